"""Gateway Protocol — dependency inversion for testability."""

from typing import Protocol

from src.rb_payment.domain.models import GatewayOrder, GatewayPayment


class PaymentGatewayProtocol(Protocol):
    key_id: str

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder: ...

    async def fetch_order(self, order_id: str) -> GatewayOrder: ...

    async def fetch_payment(self, payment_id: str) -> GatewayPayment: ...
