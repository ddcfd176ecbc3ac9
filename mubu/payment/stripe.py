"""Stripe PaymentIntents over the REST API for international payments."""

from __future__ import annotations

import logging

import httpx

from ..http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, create_client, request_json
from . import PaymentProcessor, PaymentResult

logger = logging.getLogger(__name__)

BASE_URL = "https://api.stripe.com/v1"

_STATUS = {
    "succeeded": "paid",
    "canceled": "cancelled",
    "processing": "ready",
    "requires_payment_method": "ready",
    "requires_confirmation": "ready",
    "requires_action": "ready",
    "requires_capture": "ready",
}


class StripeProcessor(PaymentProcessor):
    name = "stripe"

    def __init__(
        self,
        secret_key: str = "",
        currency: str = "krw",
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._currency = currency.lower()
        self._timeout = timeout
        self._retries = retries
        self._transport = transport

    async def _call(self, method: str, path: str, retries: int | None = None, **kwargs) -> dict:
        if not self._secret_key:
            raise ValueError(
                "Stripe 시크릿 키가 설정되지 않았습니다. "
                "STRIPE_SECRET_KEY 환경변수를 확인하세요."
            )
        async with create_client(
            self._timeout,
            self._transport,
            base_url=BASE_URL,
            auth=(self._secret_key, ""),
        ) as client:
            return await request_json(
                client,
                method,
                path,
                retries=self._retries if retries is None else retries,
                **kwargs,
            )

    @staticmethod
    def _result(intent: dict) -> PaymentResult:
        return PaymentResult(
            payment_id=intent.get("id", ""),
            merchant_uid=(intent.get("metadata") or {}).get("merchant_uid", ""),
            # KRW is a zero-decimal currency in Stripe
            amount=int(intent.get("amount", 0)),
            status=_STATUS.get(intent.get("status", ""), "failed"),
            paid_at=intent.get("created"),
            raw=intent,
        )

    async def prepare(
        self,
        merchant_uid: str,
        amount: int,
        product_name: str,
        buyer_name: str = "",
        buyer_email: str | None = None,
    ) -> str:
        data = {
            "amount": amount,
            "currency": self._currency,
            "description": product_name,
            "metadata[merchant_uid]": merchant_uid,
        }
        if buyer_email:
            data["receipt_email"] = buyer_email
        intent = await self._call(
            "POST",
            "/payment_intents",
            data=data,
            headers={"Idempotency-Key": merchant_uid},
        )
        logger.info("PaymentIntent %s created for %s", intent.get("id"), merchant_uid)
        return intent["client_secret"]

    async def fetch(self, payment_id: str) -> PaymentResult:
        return self._result(await self._call("GET", f"/payment_intents/{payment_id}"))

    async def cancel(
        self, payment_id: str, reason: str, amount: int | None = None
    ) -> PaymentResult:
        current = await self.fetch(payment_id)
        if current.status == "paid":
            data: dict = {"payment_intent": payment_id, "metadata[reason]": reason}
            if amount is not None:
                data["amount"] = amount
            await self._call("POST", "/refunds", retries=0, data=data)
            logger.info("Refunded %s (%s)", payment_id, reason)
            return PaymentResult(
                payment_id=payment_id,
                merchant_uid=current.merchant_uid,
                amount=current.amount,
                status="cancelled",
                raw=current.raw,
            )

        intent = await self._call(
            "POST",
            f"/payment_intents/{payment_id}/cancel",
            retries=0,
            data={"cancellation_reason": "requested_by_customer"},
        )
        logger.info("Cancelled %s (%s)", payment_id, reason)
        return self._result(intent)
