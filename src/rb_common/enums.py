"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class ObligationKind(str, Enum):
    SUBSCRIPTION = "subscription"  # owner pays platform service charge per listing
    LEASE = "lease"                # tenant pays rent per tenancy


class LifecycleStage(str, Enum):
    """Kind-independent bucket derived from time until due."""
    CURRENT = "CURRENT"
    DUE = "DUE"
    OVERDUE = "OVERDUE"
    LAPSED = "LAPSED"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    DUE = "due"
    OVERDUE = "overdue"
    SUSPENDED = "suspended"


class LeaseStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    OVERDUE = "overdue"
    TERMINATED = "terminated"


class LedgerEntryStatus(str, Enum):
    COMPLETED = "completed"


class UnitType(str, Enum):
    PG = "PG"
    FLAT = "Flat"
    APARTMENT = "Apartment"


class GatewayPaymentStatus(str, Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    FAILED = "failed"
