"""Tests for the SQLite stores."""

import sqlite3
from datetime import date, datetime, timedelta, timezone

import pytest

from mubu.db import ComparisonDB, LocalComparisonDB, PaymentDB, UserDB
from mubu.db.comparisons import LOCAL_HISTORY_LIMIT
from mubu.db.schema import _SCHEMA_VERSION, ensure_schema, immediate
from mubu.models import ComparisonStatus, UserAccount, make_record


def _record(name="Tiger Balm", korean_price=52_000, converted=45_000):
    return make_record(
        product_name=name,
        local_price=1_200,
        local_currency="THB",
        converted_local_price=converted,
        korean_price=korean_price,
        comparison_source="네이버",
    )


@pytest.fixture
def account_path(tmp_path):
    return tmp_path / "account.db"


@pytest.fixture
def users(account_path):
    db = UserDB(account_path)
    yield db
    db.close()


class TestSchema:
    def test_creates_tables(self, tmp_path):
        conn = ensure_schema(tmp_path / "test.db")
        names = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {
            "users",
            "price_comparisons",
            "local_comparisons",
            "device_usage",
            "affiliate_clicks",
            "payments",
            "schema_version",
        } <= names
        conn.close()

    def test_creates_parent_dirs(self, tmp_path):
        db_path = tmp_path / "sub" / "dir" / "test.db"
        ensure_schema(db_path).close()
        assert db_path.exists()

    def test_idempotent(self, tmp_path):
        ensure_schema(tmp_path / "test.db").close()
        conn = ensure_schema(tmp_path / "test.db")
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        assert row["version"] == _SCHEMA_VERSION
        assert conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0] == 1
        conn.close()

    def test_wal_and_foreign_keys(self, tmp_path):
        conn = ensure_schema(tmp_path / "test.db")
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()

    def test_immediate_rolls_back(self, tmp_path):
        conn = ensure_schema(tmp_path / "test.db")
        with pytest.raises(RuntimeError):
            with immediate(conn):
                conn.execute("INSERT INTO users (id) VALUES ('u1')")
                raise RuntimeError("boom")
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0
        conn.close()


class TestUserDB:
    def test_upsert_and_get(self, users):
        user = users.upsert_user(UserAccount(id="u1", email="a@example.com", country="KR"))
        assert user.email == "a@example.com"
        assert user.subscription_tier == "free"
        assert user.is_authenticated

        users.upsert_user(UserAccount(id="u1", email="b@example.com"))
        assert users.get_user("u1").email == "b@example.com"

    def test_upsert_keeps_counters(self, users):
        users.upsert_user(UserAccount(id="u1"))
        users.increment_search("u1", "2025-03-01", 1_000)
        user = users.upsert_user(UserAccount(id="u1", display_name="여행자"))
        assert user.daily_search_count == 1
        assert user.usage_savings == 1_000

    def test_get_missing(self, users):
        assert users.get_user("nobody") is None

    def test_create_anonymous_user(self, users):
        user = users.create_anonymous_user("anon_abc")
        assert user.is_anonymous
        assert user.display_name == "게스트"
        # second call is a no-op
        assert users.create_anonymous_user("anon_abc").id == "anon_abc"

    def test_increment_search(self, users):
        users.upsert_user(UserAccount(id="u1"))
        user, counted = users.increment_search("u1", "2025-03-01", -3_000)
        assert counted
        assert user.daily_search_count == 1
        assert user.last_search_date == "2025-03-01"
        assert user.usage_savings == 3_000

    def test_increment_resets_on_new_day(self, users):
        users.upsert_user(UserAccount(id="u1"))
        for _ in range(3):
            users.increment_search("u1", "2025-03-01")
        user, _ = users.increment_search("u1", "2025-03-02")
        assert user.daily_search_count == 1

    def test_increment_blocked_at_limit(self, users):
        users.upsert_user(UserAccount(id="u1"))
        for _ in range(2):
            users.increment_search("u1", "2025-03-01", limit=2)
        user, counted = users.increment_search("u1", "2025-03-01", 500, limit=2)
        assert not counted
        assert user.daily_search_count == 2
        assert users.get_user("u1").usage_savings == 0

    def test_increment_unknown_user(self, users):
        with pytest.raises(LookupError):
            users.increment_search("ghost", "2025-03-01")

    def test_expire_subscriptions(self, users):
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        users.upsert_user(UserAccount(id="old"))
        users.upsert_user(UserAccount(id="new"))
        users.update_subscription("old", "daily", (now - timedelta(hours=1)).isoformat())
        users.update_subscription("new", "weekly", (now + timedelta(days=3)).isoformat())

        assert users.expire_subscriptions(now) == 1
        assert users.get_user("old").subscription_tier == "free"
        assert users.get_user("old").subscription_expires_at is None
        assert users.get_user("new").subscription_tier == "weekly"

    def test_purge_anonymous_users(self, users):
        users.create_anonymous_user("anon_idle")
        users.create_anonymous_user("anon_active")
        users.upsert_user(UserAccount(id="real"))
        users.increment_search("anon_idle", "2025-01-01")
        users.increment_search("anon_active", "2025-03-10")
        users.increment_search("real", "2025-01-01")

        removed = users.purge_anonymous_users(days=30, today=date(2025, 3, 15))
        assert removed == 1
        assert users.get_user("anon_idle") is None
        assert users.get_user("anon_active") is not None
        assert users.get_user("real") is not None

    def test_purge_cascades_comparisons(self, users, account_path):
        users.create_anonymous_user("anon_idle")
        users.increment_search("anon_idle", "2025-01-01")
        comparisons = ComparisonDB(account_path)
        comparisons.save("anon_idle", _record())

        users.purge_anonymous_users(days=30, today=date(2025, 3, 15))
        assert comparisons.get_user_comparisons("anon_idle") == []
        comparisons.close()


class TestComparisonDB:
    def test_save_updates_total_savings(self, users, account_path):
        users.upsert_user(UserAccount(id="u1"))
        db = ComparisonDB(account_path)
        db.save("u1", _record(korean_price=52_000))
        db.save("u1", _record(korean_price=40_000))  # negative savings
        db.save("u1", _record(korean_price=None))

        assert users.get_user("u1").total_savings == 7_000
        history = db.get_user_comparisons("u1")
        assert len(history) == 3
        assert history[0].korean_price is None
        assert history[0].savings_amount == 0
        assert history[0].status is ComparisonStatus.COMPLETED
        db.close()

    def test_save_requires_existing_user(self, account_path):
        db = ComparisonDB(account_path)
        with pytest.raises(sqlite3.IntegrityError):
            db.save("ghost", _record())
        db.close()

    def test_limit(self, users, account_path):
        users.upsert_user(UserAccount(id="u1"))
        db = ComparisonDB(account_path)
        for i in range(5):
            db.save("u1", _record(name=f"item {i}"))
        assert len(db.get_user_comparisons("u1", limit=2)) == 2
        db.close()


class TestLocalComparisonDB:
    def test_round_trip(self, tmp_path):
        db = LocalComparisonDB(tmp_path / "device.db")
        row_id = db.save(_record())
        saved = db.get_comparisons()[0]
        assert saved.id == row_id
        assert saved.product_name == "Tiger Balm"
        assert saved.savings_amount == 7_000
        assert saved.comparison_source == "네이버"
        db.close()

    def test_keeps_newest_100(self, tmp_path):
        db = LocalComparisonDB(tmp_path / "device.db")
        for i in range(LOCAL_HISTORY_LIMIT + 5):
            db.save(_record(name=f"item {i}"))
        history = db.get_comparisons()
        assert len(history) == LOCAL_HISTORY_LIMIT
        assert history[0].product_name == f"item {LOCAL_HISTORY_LIMIT + 4}"
        assert history[-1].product_name == "item 5"
        db.close()

    def test_clear(self, tmp_path):
        db = LocalComparisonDB(tmp_path / "device.db")
        db.save(_record())
        db.clear()
        assert db.get_comparisons() == []
        db.close()


class TestPaymentDB:
    def test_order_lifecycle(self, account_path):
        db = PaymentDB(account_path)
        db.create_order("mubu_1", "u1", "weekly", 9_900, "iamport")
        order = db.get_order("mubu_1")
        assert order["status"] == "ready"
        assert order["amount"] == 9_900

        assert db.mark_paid("mubu_1", "imp_123") is True
        assert db.mark_paid("mubu_1", "imp_123") is False
        order = db.get_order("mubu_1")
        assert order["status"] == "paid"
        assert order["payment_id"] == "imp_123"
        db.close()

    def test_duplicate_merchant_uid(self, account_path):
        db = PaymentDB(account_path)
        db.create_order("mubu_1", "u1", "daily", 2_900, "stripe")
        with pytest.raises(sqlite3.IntegrityError):
            db.create_order("mubu_1", "u1", "daily", 2_900, "stripe")
        db.close()

    def test_unknown_order(self, account_path):
        db = PaymentDB(account_path)
        assert db.get_order("missing") is None
        assert db.mark_paid("missing", "x") is False
        db.close()
