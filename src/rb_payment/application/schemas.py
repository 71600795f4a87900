"""Pydantic schemas for rb_payment API."""

from pydantic import BaseModel, Field

from src.rb_common.enums import ObligationKind
from src.rb_common.money import minor_to_display
from src.rb_obligation.application.schemas import ApplyPaymentResult, LedgerEntryItem
from src.rb_payment.domain.models import GatewayPayment
from src.rb_pricing.domain.models import ChargeQuote

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class QuoteRequest(BaseModel):
    kind: ObligationKind
    resource_id: str = Field(..., min_length=1)
    periods: int = Field(..., ge=1)
    coupon_code: str | None = Field(None, max_length=40)


class CreateOrderRequest(QuoteRequest):
    pass


class VerifyPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    # Optional expectation; rejected when the order pays for something else
    kind: ObligationKind | None = None
    resource_id: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class QuoteView(BaseModel):
    kind: str
    resource_id: str
    per_period_rate: int
    periods: int
    base_amount: int
    duration_discount_pct: str
    duration_discount_amount: int
    convenience_fee_pct: str
    convenience_fee_amount: int
    coupon_code: str | None
    coupon_discount_pct: str
    coupon_discount_amount: int
    final_amount: int
    amount_minor: int
    amount_display: str

    @classmethod
    def from_domain(
        cls, kind: ObligationKind, resource_id: str, quote: ChargeQuote, currency: str = "INR"
    ) -> "QuoteView":
        b = quote.breakdown
        return cls(
            kind=kind.value,
            resource_id=resource_id,
            per_period_rate=b.per_period_rate,
            periods=b.periods,
            base_amount=b.base_amount,
            duration_discount_pct=_bps_to_pct(b.duration_discount_bps),
            duration_discount_amount=b.duration_discount_amount,
            convenience_fee_pct=_bps_to_pct(b.convenience_fee_bps),
            convenience_fee_amount=b.convenience_fee_amount,
            coupon_code=b.coupon_code,
            coupon_discount_pct=_bps_to_pct(b.coupon_discount_bps),
            coupon_discount_amount=b.coupon_discount_amount,
            final_amount=quote.final_amount,
            amount_minor=quote.amount_minor,
            amount_display=minor_to_display(quote.amount_minor, currency),
        )


class OrderView(BaseModel):
    order_id: str
    receipt: str
    amount_minor: int
    currency: str
    key_id: str                      # public key for the checkout widget
    quote: QuoteView


class VerifyPaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    gateway_status: str
    result: ApplyPaymentResult


class PaymentDetailsView(BaseModel):
    payment_id: str
    order_id: str | None
    gateway_status: str
    amount_minor: int
    amount_display: str
    currency: str
    notes: dict[str, str]
    ledger_entry: LedgerEntryItem | None  # None until verified and credited

    @classmethod
    def from_domain(
        cls, payment: GatewayPayment, entry: LedgerEntryItem | None
    ) -> "PaymentDetailsView":
        return cls(
            payment_id=payment.id,
            order_id=payment.order_id,
            gateway_status=payment.status,
            amount_minor=payment.amount_minor,
            amount_display=minor_to_display(payment.amount_minor, payment.currency or "INR"),
            currency=payment.currency,
            notes=dict(payment.notes),
            ledger_entry=entry,
        )


def _bps_to_pct(bps: int) -> str:
    """Basis points as a percent string: 270 -> '2.7', 1300 -> '13'."""
    whole, frac = divmod(bps, 100)
    if frac == 0:
        return str(whole)
    return f"{whole}.{frac:02d}".rstrip("0")
