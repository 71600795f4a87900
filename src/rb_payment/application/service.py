"""PaymentApplicationService — quote, order creation and verified settlement.

A payment reaches the ledger only after three gates: the checkout signature,
the gateway's own records of the payment and its order (settled, same order,
same amount), and the obligation service's idempotent apply. What a payment
buys is read from the order notes written by create_order, never from the
client. A failure at any gate leaves the obligation untouched.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import GatewayPaymentStatus, ObligationKind
from src.rb_common.errors import InvalidPaymentDataError, PaymentNotSettledError
from src.rb_common.money import to_minor_units
from src.rb_obligation.application.service import ObligationApplicationService
from src.rb_payment.application.schemas import (
    CreateOrderRequest,
    OrderView,
    PaymentDetailsView,
    QuoteRequest,
    QuoteView,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from src.rb_payment.domain.gateway import PaymentGatewayProtocol
from src.rb_payment.domain.models import GatewayOrder
from src.rb_payment.domain.signature import verify_signature
from src.rb_pricing.domain.calculator import compute_charge
from src.rb_pricing.domain.models import ChargeQuote
from src.rb_pricing.domain.policy import DiscountPolicy

logger = logging.getLogger(__name__)

SETTLED_STATUSES = frozenset(
    {GatewayPaymentStatus.CAPTURED.value, GatewayPaymentStatus.AUTHORIZED.value}
)


class PaymentApplicationService:
    def __init__(
        self,
        obligations: ObligationApplicationService,
        gateway: PaymentGatewayProtocol,
        policy: DiscountPolicy,
        key_secret: str,
        currency: str = "INR",
    ) -> None:
        self._obligations = obligations
        self._gateway = gateway
        self._policy = policy
        self._key_secret = key_secret
        self._currency = currency

    async def _quote(self, db: AsyncSession, body: QuoteRequest) -> ChargeQuote:
        basis = await self._obligations.rate_basis(db, body.kind, body.resource_id)
        return compute_charge(basis, body.periods, self._policy, body.coupon_code)

    async def quote(self, db: AsyncSession, body: QuoteRequest) -> QuoteView:
        quote = await self._quote(db, body)
        return QuoteView.from_domain(body.kind, body.resource_id, quote, self._currency)

    async def create_order(self, db: AsyncSession, body: CreateOrderRequest) -> OrderView:
        """Quote, then open a gateway order tagged with what it pays for."""
        # Refuse to take money for something that cannot be credited
        await self._obligations.get_obligation(db, body.kind, body.resource_id)
        quote = await self._quote(db, body)
        receipt = f"{body.kind.value[:5]}_{uuid.uuid4().hex[:24]}"
        notes = {
            "kind": body.kind.value,
            "resource_id": body.resource_id,
            "periods": str(body.periods),
        }
        if quote.breakdown.coupon_code:
            notes["coupon_code"] = quote.breakdown.coupon_code
        if quote.breakdown.convenience_fee_amount:
            # Fee portion of what is charged; a coupon can push the total below it
            fee_minor = min(
                to_minor_units(quote.breakdown.convenience_fee_amount), quote.amount_minor
            )
            notes["convenience_fee_minor"] = str(fee_minor)
        order = await self._gateway.create_order(
            quote.amount_minor, self._currency, receipt, notes
        )
        logger.info(
            "Created order %s for %s/%s: periods=%d amount_minor=%d",
            order.id,
            body.kind.value,
            body.resource_id,
            body.periods,
            order.amount_minor,
        )
        return OrderView(
            order_id=order.id,
            receipt=order.receipt or receipt,
            amount_minor=order.amount_minor,
            currency=order.currency,
            key_id=self._gateway.key_id,
            quote=QuoteView.from_domain(body.kind, body.resource_id, quote, self._currency),
        )

    async def verify_and_apply(
        self, db: AsyncSession, body: VerifyPaymentRequest
    ) -> VerifyPaymentResponse:
        verify_signature(self._key_secret, body.order_id, body.payment_id, body.signature)

        payment = await self._gateway.fetch_payment(body.payment_id)
        if payment.order_id != body.order_id:
            raise InvalidPaymentDataError(
                f"payment {payment.id} belongs to order {payment.order_id}, not {body.order_id}"
            )
        if payment.status not in SETTLED_STATUSES:
            raise PaymentNotSettledError(payment.id, payment.status)

        # What was bought is read back from the order this service created
        order = await self._gateway.fetch_order(body.order_id)
        if payment.amount_minor != order.amount_minor:
            raise InvalidPaymentDataError(
                f"payment {payment.id} paid {payment.amount_minor}, "
                f"order {order.id} is for {order.amount_minor}"
            )
        if payment.currency and order.currency and payment.currency != order.currency:
            raise InvalidPaymentDataError(
                f"payment {payment.id} in {payment.currency}, order in {order.currency}"
            )
        target = _target_of(order, body)
        result = await self._obligations.apply_payment(
            db,
            target.kind,
            target.resource_id,
            payment.amount_minor,
            target.periods,
            payment.id,
            body.order_id,
            convenience_fee=target.convenience_fee,
        )
        return VerifyPaymentResponse(
            payment_id=payment.id,
            order_id=body.order_id,
            gateway_status=payment.status,
            result=result,
        )

    async def payment_details(self, db: AsyncSession, payment_id: str) -> PaymentDetailsView:
        """Gateway record of a payment next to its ledger entry, if credited."""
        payment = await self._gateway.fetch_payment(payment_id)
        entry = await self._obligations.find_payment_entry(db, payment.id)
        return PaymentDetailsView.from_domain(payment, entry)


@dataclass(frozen=True)
class PaymentTarget:
    kind: ObligationKind
    resource_id: str
    periods: int
    convenience_fee: int


def _target_of(order: GatewayOrder, body: VerifyPaymentRequest) -> PaymentTarget:
    """Resolve what an order pays for from its notes.

    The client may name the obligation it expects; a mismatch is rejected,
    never used to fill in missing notes.
    """
    notes = order.notes
    raw_kind = notes.get("kind")
    resource_id = notes.get("resource_id")
    raw_periods = notes.get("periods")
    if not raw_kind or not resource_id or not raw_periods:
        raise InvalidPaymentDataError(f"order {order.id} does not identify an obligation")
    try:
        kind = ObligationKind(raw_kind)
        periods = int(raw_periods)
        convenience_fee = int(notes.get("convenience_fee_minor") or 0)
    except ValueError as exc:
        raise InvalidPaymentDataError(f"malformed order notes: {exc}") from exc
    if (body.kind is not None and body.kind is not kind) or (
        body.resource_id and body.resource_id != resource_id
    ):
        raise InvalidPaymentDataError(
            f"order {order.id} is for {raw_kind}/{resource_id}, "
            f"not {body.kind.value if body.kind else raw_kind}/{body.resource_id or resource_id}"
        )
    return PaymentTarget(kind, resource_id, periods, convenience_fee)
