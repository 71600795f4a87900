"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Pricing (order creation rejected before any charge)
  2xxx: Obligation / ledger
  3xxx: Payment gateway / verification
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Pricing ---

class InvalidDurationError(AppError):
    def __init__(self, periods: int, allowed: tuple[int, ...]) -> None:
        allowed_str = ", ".join(str(p) for p in allowed)
        super().__init__(
            1001, f"Invalid duration: {periods} periods (allowed: {allowed_str})", 422
        )


class InvalidCouponError(AppError):
    def __init__(self, code: str) -> None:
        super().__init__(1002, f"Invalid coupon code: {code}", 422)


class InvalidRateBasisError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1003, f"Invalid rate basis: {detail}", 422)


# --- 2xxx: Obligation ---

class ObligationNotFoundError(AppError):
    def __init__(self, kind: str, resource_id: str) -> None:
        super().__init__(2001, f"Obligation not found: {kind}/{resource_id}", 404)


class ObligationExistsError(AppError):
    def __init__(self, kind: str, resource_id: str) -> None:
        super().__init__(2002, f"Obligation already exists: {kind}/{resource_id}", 409)


class InvalidPaymentDataError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Invalid payment data: {detail}", 422)


class ResourceNotFoundError(AppError):
    def __init__(self, kind: str, resource_id: str) -> None:
        super().__init__(2004, f"Parent resource not found: {kind}/{resource_id}", 404)


# --- 3xxx: Payment ---

class InvalidSignatureError(AppError):
    def __init__(self) -> None:
        super().__init__(3001, "Invalid payment signature", 400)


class GatewayUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, f"Payment gateway unavailable: {detail}", 503)


class PaymentNotSettledError(AppError):
    def __init__(self, payment_id: str, status: str) -> None:
        super().__init__(
            3003, f"Payment {payment_id} is not settled (gateway status: {status})", 422
        )


class PaymentAppliedButNotPersistedError(AppError):
    """Gateway accepted the payment but the local commit failed.

    Retry the apply step with the same confirmation; never re-charge.
    """

    def __init__(self, payment_id: str) -> None:
        super().__init__(
            3004,
            f"Payment {payment_id} succeeded at the gateway but was not recorded; "
            "retry verification with the same confirmation",
            503,
        )
        self.payment_id = payment_id


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class AdminTokenRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(9003, "Valid admin token required", 403)
