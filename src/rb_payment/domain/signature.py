"""Gateway checkout signature: HMAC-SHA256(secret, "<order_id>|<payment_id>") as hex."""

import hashlib
import hmac
import logging

from src.rb_common.errors import InvalidSignatureError

logger = logging.getLogger(__name__)


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())


def verify_signature(secret: str, order_id: str, payment_id: str, signature: str) -> None:
    """Raise InvalidSignatureError unless ``signature`` is authentic."""
    if not signature_matches(secret, order_id, payment_id, signature):
        logger.warning(
            "Rejected payment confirmation with bad signature: order=%s payment=%s",
            order_id,
            payment_id,
        )
        raise InvalidSignatureError()
