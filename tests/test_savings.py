"""Tests for savings tiers and quantity totals."""

import pytest

from mubu.models import make_record
from mubu.savings import (
    MARGINAL_TEXTS,
    ComparisonView,
    SavingsTier,
    classify,
    savings_percentage,
)


class TestClassify:
    def test_no_korean_price(self):
        msg = classify(0, 45_000, korean_price_known=False)
        assert msg.tier is SavingsTier.NO_DATA
        assert msg.text == "한국에서 구할 수 없는걸 수도"

    def test_negative_savings_buy_at_home(self):
        msg = classify(-500, 45_000, True)
        assert msg.tier is SavingsTier.BUY_AT_HOME
        assert msg.text == "한국에서 사세요"
        assert msg.variant == "outline"

    def test_zero_savings_is_marginal(self):
        msg = classify(0, 45_000, True, choice=lambda texts: texts[0])
        assert msg.tier is SavingsTier.MARGINAL
        assert msg.text == MARGINAL_TEXTS[0]

    def test_marginal_text_uses_choice(self):
        msg = classify(100, 10_000, True, choice=lambda texts: texts[-1])
        assert msg.text == MARGINAL_TEXTS[-1]

    @pytest.mark.parametrize(
        "savings, tier",
        [
            (499, SavingsTier.MARGINAL),
            (500, SavingsTier.GOOD_DEAL),
            (1_499, SavingsTier.GOOD_DEAL),
            (1_500, SavingsTier.EXCELLENT_DEAL),
        ],
    )
    def test_boundaries(self, savings, tier):
        assert classify(savings, 10_000, True).tier is tier

    def test_excellent_deal(self):
        # 7,000 on 45,000 is 15.6%
        msg = classify(7_000, 45_000, True)
        assert msg.tier is SavingsTier.EXCELLENT_DEAL
        assert msg.text == "다 쓸어 담어"

    def test_zero_local_price(self):
        assert savings_percentage(1_000, 0) == 0.0


class TestComparisonView:
    def _record(self, korean_price=52_000):
        return make_record(
            product_name="Tiger Balm",
            local_price=1_200,
            local_currency="THB",
            converted_local_price=45_000,
            korean_price=korean_price,
        )

    def test_totals_scale_with_quantity(self):
        view = ComparisonView(self._record(), quantity=3)
        assert view.total_local_price == 3_600
        assert view.total_local_krw == 135_000
        assert view.total_korean_price == 156_000
        assert view.total_savings == 21_000
        assert view.savings_label() == "총 절약 21,000원"
        assert view.percentage == pytest.approx(15.56, abs=0.01)

    def test_quantity_is_clamped(self):
        assert ComparisonView(self._record(), quantity=0).quantity == 1
        assert ComparisonView(self._record(), quantity=500).quantity == 99

    def test_extra_cost_label(self):
        view = ComparisonView(self._record(korean_price=40_000), quantity=2)
        assert view.total_savings == -10_000
        assert view.savings_label() == "총 추가비용 10,000원"
        assert view.message().tier is SavingsTier.BUY_AT_HOME

    def test_no_korean_price(self):
        view = ComparisonView(self._record(korean_price=None))
        assert view.total_korean_price is None
        assert view.total_savings == 0
        assert view.message().tier is SavingsTier.NO_DATA
