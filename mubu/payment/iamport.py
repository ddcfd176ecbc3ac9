"""Iamport (portone) REST client for domestic payments."""

from __future__ import annotations

import logging
import time

import httpx

from ..http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, create_client, request_json
from . import PaymentProcessor, PaymentResult

logger = logging.getLogger(__name__)

BASE_URL = "https://api.iamport.kr"


class IamportProcessor(PaymentProcessor):
    name = "iamport"

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._timeout = timeout
        self._retries = retries
        self._transport = transport
        self._token: str | None = None
        self._token_expiry = 0.0

    def _client(self) -> httpx.AsyncClient:
        return create_client(self._timeout, self._transport, base_url=BASE_URL)

    @staticmethod
    def _unwrap(data: dict, action: str) -> dict:
        if data.get("code") != 0:
            raise RuntimeError(f"아임포트 {action} 실패: {data.get('message')}")
        return data.get("response") or {}

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if self._token and self._token_expiry > time.time():
            return self._token
        if not self._api_key or not self._api_secret:
            raise ValueError(
                "아임포트 API 키가 설정되지 않았습니다. "
                "IMP_KEY / IMP_SECRET 환경변수를 확인하세요."
            )

        data = await request_json(
            client,
            "POST",
            "/users/getToken",
            retries=self._retries,
            json={"imp_key": self._api_key, "imp_secret": self._api_secret},
        )
        resp = self._unwrap(data, "토큰 발급")
        self._token = resp["access_token"]
        # expired_at is a unix timestamp
        self._token_expiry = float(resp.get("expired_at", 0)) - 60
        return self._token

    async def _call(
        self, method: str, path: str, action: str, retries: int | None = None, **kwargs
    ) -> dict:
        async with self._client() as client:
            token = await self._access_token(client)
            data = await request_json(
                client,
                method,
                path,
                retries=self._retries if retries is None else retries,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        return self._unwrap(data, action)

    @staticmethod
    def _result(resp: dict) -> PaymentResult:
        return PaymentResult(
            payment_id=resp.get("imp_uid", ""),
            merchant_uid=resp.get("merchant_uid", ""),
            amount=int(resp.get("amount", 0)),
            status=resp.get("status", "failed"),
            paid_at=resp.get("paid_at") or None,
            receipt_url=resp.get("receipt_url"),
            raw=resp,
        )

    async def prepare(
        self,
        merchant_uid: str,
        amount: int,
        product_name: str,
        buyer_name: str = "",
        buyer_email: str | None = None,
    ) -> str:
        await self._call(
            "POST",
            "/payments/prepare",
            "결제 준비",
            json={"merchant_uid": merchant_uid, "amount": amount},
        )
        logger.info("Payment prepared: %s for ₩%s", merchant_uid, f"{amount:,}")
        return merchant_uid

    async def fetch(self, payment_id: str) -> PaymentResult:
        resp = await self._call("GET", f"/payments/{payment_id}", "결제 조회")
        return self._result(resp)

    async def cancel(
        self, payment_id: str, reason: str, amount: int | None = None
    ) -> PaymentResult:
        body: dict = {"imp_uid": payment_id, "reason": reason}
        if amount is not None:
            body["amount"] = amount
        # Never retried: a cancel that timed out may already have gone through
        resp = await self._call("POST", "/payments/cancel", "결제 취소", retries=0, json=body)
        logger.info("Payment cancelled: %s (%s)", payment_id, reason)
        return self._result(resp)
