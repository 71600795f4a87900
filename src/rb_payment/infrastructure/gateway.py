"""PaymentGatewayClient — Razorpay-compatible REST client over httpx.

Every call is bounded by a timeout. Timeouts, transport failures, 5xx
responses and unreadable bodies raise GatewayUnavailableError so callers can
tell "gateway down" apart from "payment not valid".
"""

import logging
from typing import Any

import httpx

from config.settings import Settings
from src.rb_common.errors import GatewayUnavailableError, InvalidPaymentDataError
from src.rb_payment.domain.models import GatewayOrder, GatewayPayment

logger = logging.getLogger(__name__)


def _notes(raw: Any) -> dict[str, str]:
    # Gateway returns [] instead of {} when an order carries no notes
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items()}


class PaymentGatewayClient:
    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGatewayClient":
        return cls(
            settings.GATEWAY_BASE_URL,
            settings.GATEWAY_KEY_ID,
            settings.GATEWAY_KEY_SECRET,
            timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            logger.error("Gateway %s %s timed out", method, path)
            raise GatewayUnavailableError("request timed out") from exc
        except httpx.TransportError as exc:
            logger.error("Gateway %s %s failed: %s", method, path, exc)
            raise GatewayUnavailableError(str(exc) or type(exc).__name__) from exc
        if response.status_code >= 500:
            logger.error("Gateway %s %s returned %d", method, path, response.status_code)
            raise GatewayUnavailableError(f"gateway returned {response.status_code}")
        return response

    @staticmethod
    def _body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayUnavailableError("unreadable gateway response") from exc
        if not isinstance(body, dict):
            raise GatewayUnavailableError("unexpected gateway response shape")
        return body

    @staticmethod
    def _order(body: dict[str, Any]) -> GatewayOrder:
        try:
            return GatewayOrder(
                id=str(body["id"]),
                amount_minor=int(body["amount"]),
                currency=str(body.get("currency", "")),
                receipt=str(body.get("receipt") or ""),
                status=str(body.get("status", "created")),
                notes=_notes(body.get("notes")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayUnavailableError("incomplete order record") from exc

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder:
        response = await self._request(
            "POST",
            "/orders",
            json={
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            },
        )
        if response.status_code >= 400:
            # Credentials or payload rejected: nothing the client can fix
            logger.error("Gateway rejected order %s: %s", receipt, response.text)
            raise GatewayUnavailableError(f"order rejected ({response.status_code})")
        return self._order(self._body(response))

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        response = await self._request("GET", f"/orders/{order_id}")
        if response.status_code in (400, 404):
            raise InvalidPaymentDataError(f"unknown order id {order_id}")
        if response.status_code >= 400:
            logger.error("Gateway refused order lookup %s: %d", order_id, response.status_code)
            raise GatewayUnavailableError(f"order lookup rejected ({response.status_code})")
        return self._order(self._body(response))

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        response = await self._request("GET", f"/payments/{payment_id}")
        if response.status_code in (400, 404):
            raise InvalidPaymentDataError(f"unknown payment id {payment_id}")
        if response.status_code >= 400:
            logger.error("Gateway refused payment lookup %s: %d", payment_id, response.status_code)
            raise GatewayUnavailableError(f"payment lookup rejected ({response.status_code})")
        body = self._body(response)
        try:
            return GatewayPayment(
                id=str(body["id"]),
                status=str(body["status"]),
                amount_minor=int(body["amount"]),
                currency=str(body.get("currency", "")),
                order_id=body.get("order_id"),
                notes=_notes(body.get("notes")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayUnavailableError("incomplete payment record") from exc
