"""FastAPI dependencies for payment event verification."""

from typing import Optional
from fastapi import Header, Request
import hashlib
import hmac
import logging

from .config import settings
from .exceptions import InvalidSignatureError

logger = logging.getLogger(__name__)


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(provider: str, body: bytes, signature: Optional[str]) -> None:
    """
    Check a payment event signature against the provider's signing secret.

    Raises:
        InvalidSignatureError: If the provider is unknown or the signature is missing or wrong
    """
    secret = settings.webhook_secrets.get(provider.upper())
    if not secret or not signature:
        raise InvalidSignatureError(provider)

    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        logger.warning(
            "Payment event signature mismatch",
            extra={"provider": provider, "body_length": len(body)}
        )
        raise InvalidSignatureError(provider)


async def get_verified_event_body(
    request: Request,
    x_payment_provider: str = Header(..., alias="X-Payment-Provider"),
    x_signature: Optional[str] = Header(None, alias="X-Signature"),
) -> bytes:
    """
    Authentication dependency for inbound payment events.

    Returns:
        bytes: The raw request body, once its signature has been verified

    Raises:
        InvalidSignatureError: If verification fails
    """
    body = await request.body()
    verify_signature(x_payment_provider, body, x_signature)
    return body
