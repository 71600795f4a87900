"""Gateway-facing value objects — frozen dataclasses, no I/O."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GatewayOrder:
    id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str
    notes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayPayment:
    """The gateway's own record of a payment; the only trusted amount source."""

    id: str
    status: str
    amount_minor: int
    currency: str
    order_id: str | None
    notes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentConfirmation:
    """What the client hands back after checkout. Untrusted until verified."""

    order_id: str
    payment_id: str
    signature: str
