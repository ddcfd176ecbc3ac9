"""Premium plans, payment processors and subscription activation."""

from __future__ import annotations

import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..config import PaymentConfig
    from ..db import PaymentDB, UserDB
    from ..models import UserAccount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: int  # KRW
    duration: timedelta
    features: tuple[str, ...] = ()


PLANS: dict[str, Plan] = {
    "daily": Plan(
        "daily", "여행자 일일 패스", 2_900, timedelta(hours=24),
        ("24시간 무제한 가격 비교", "실시간 환율 변환", "절약 통계 대시보드"),
    ),
    "weekly": Plan(
        "weekly", "여행 패키지", 9_900, timedelta(days=7),
        ("7일간 무제한 가격 비교", "여행 쇼핑 리포트 PDF", "제휴 할인 우선 알림"),
    ),
    "monthly": Plan(
        "monthly", "월간 무제한", 19_900, timedelta(days=30),
        ("30일간 무제한 가격 비교", "고급 통계 및 분석", "여행 소비 패턴 분석"),
    ),
}


def get_plan(plan_id: str) -> Plan:
    try:
        return PLANS[plan_id]
    except KeyError:
        raise ValueError(
            f"알 수 없는 요금제: {plan_id!r} (daily / weekly / monthly)"
        ) from None


class PaymentVerificationError(Exception):
    """The provider's record of a payment does not match what was ordered."""


@dataclass
class PaymentResult:
    payment_id: str
    merchant_uid: str
    amount: int
    status: str  # "ready" | "paid" | "cancelled" | "failed"
    paid_at: int | None = None  # unix seconds
    receipt_url: str | None = None
    raw: dict = field(default_factory=dict, repr=False)


def new_merchant_uid() -> str:
    return f"mubu_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class PaymentProcessor(ABC):
    """A payment gateway. Amounts are whole KRW."""

    name: str = ""

    @abstractmethod
    async def prepare(
        self,
        merchant_uid: str,
        amount: int,
        product_name: str,
        buyer_name: str = "",
        buyer_email: str | None = None,
    ) -> str:
        """Register the order with the gateway before checkout.

        Returns:
            A reference the client needs to complete checkout.
        """
        ...

    @abstractmethod
    async def fetch(self, payment_id: str) -> PaymentResult:
        ...

    @abstractmethod
    async def cancel(
        self, payment_id: str, reason: str, amount: int | None = None
    ) -> PaymentResult:
        ...

    async def verify(
        self, payment_id: str, merchant_uid: str, expected_amount: int
    ) -> PaymentResult:
        """Fetch a payment and check it against the order.

        Raises:
            PaymentVerificationError: On amount or order reference mismatch.
        """
        result = await self.fetch(payment_id)
        if result.amount != expected_amount:
            raise PaymentVerificationError(
                f"결제 금액 불일치: 예상 {expected_amount}, 실제 {result.amount}"
            )
        if result.merchant_uid != merchant_uid:
            raise PaymentVerificationError(
                f"주문번호 불일치: 예상 {merchant_uid}, 실제 {result.merchant_uid}"
            )
        logger.info(
            "%s payment verified: %s ₩%s (%s)",
            self.name,
            payment_id,
            f"{result.amount:,}",
            result.status,
        )
        return result


def is_domestic(country: str | None, language: str | None) -> bool:
    if country:
        return country.upper() == "KR"
    return bool(language) and language.lower().startswith("ko")


def select_processor(
    country: str | None, language: str | None, config: PaymentConfig
) -> PaymentProcessor:
    """Iamport for Korean users, Stripe for everyone else."""
    if is_domestic(country, language):
        from .iamport import IamportProcessor

        return IamportProcessor(
            api_key=config.iamport.api_key, api_secret=config.iamport.api_secret
        )

    from .stripe import StripeProcessor

    return StripeProcessor(
        secret_key=config.stripe.secret_key, currency=config.stripe.currency
    )


@dataclass
class Checkout:
    merchant_uid: str
    plan: Plan
    provider: str
    client_reference: str


class SubscriptionService:
    def __init__(
        self,
        users: UserDB,
        payments: PaymentDB,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._users = users
        self._payments = payments
        self._clock = clock

    async def start(
        self, user: UserAccount, plan_id: str, processor: PaymentProcessor
    ) -> Checkout:
        """Create an order and register it with the gateway."""
        if user.is_anonymous:
            raise PermissionError("결제하려면 로그인이 필요합니다")

        plan = get_plan(plan_id)
        merchant_uid = new_merchant_uid()
        self._payments.create_order(
            merchant_uid, user.id, plan.id, plan.price, processor.name
        )
        reference = await processor.prepare(
            merchant_uid,
            plan.price,
            plan.name,
            buyer_name=user.display_name or "",
            buyer_email=user.email,
        )
        logger.info(
            "Checkout %s: %s ₩%s via %s", merchant_uid, plan.id, f"{plan.price:,}", processor.name
        )
        return Checkout(merchant_uid, plan, processor.name, reference)

    async def activate(
        self, payment_id: str, merchant_uid: str, processor: PaymentProcessor
    ) -> UserAccount:
        """Verify a completed payment and grant its plan.

        Granting happens at most once per order; repeating the call for an
        order that is already paid returns the account unchanged.

        Raises:
            LookupError: If the order is unknown.
            PaymentVerificationError: If the payment does not match the
                order or is not paid.
        """
        order = self._payments.get_order(merchant_uid)
        if order is None:
            raise LookupError(f"주문을 찾을 수 없습니다: {merchant_uid}")

        result = await processor.verify(payment_id, merchant_uid, order["amount"])
        if result.status != "paid":
            self._payments.set_status(merchant_uid, result.status)
            raise PaymentVerificationError(f"결제가 완료되지 않았습니다: {result.status}")

        if not self._payments.mark_paid(merchant_uid, payment_id):
            logger.info("Order %s already granted", merchant_uid)
            return self._users.get_user(order["user_id"])

        plan = get_plan(order["plan"])
        user = self._users.get_user(order["user_id"])
        now = self._clock()
        start = now
        if user is not None and user.is_premium(now) and user.subscription_expires_at:
            current = datetime.fromisoformat(user.subscription_expires_at)
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)
            start = max(now, current)
        expires = start + plan.duration

        self._users.update_subscription(order["user_id"], plan.id, expires.isoformat())
        logger.info(
            "Activated %s for %s until %s", plan.id, order["user_id"], expires.isoformat()
        )
        return self._users.get_user(order["user_id"])
