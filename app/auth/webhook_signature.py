"""
webhook_signature.py
--------------------
Purpose:
    Verify that identity verification callbacks really come from the
    provider. Didit signs the raw request body with HMAC-SHA256 using the
    webhook secret and sends the hex digest in X-Signature.
"""

import hashlib
import hmac

from fastapi import HTTPException, Request, status

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-signature"


def sign_payload(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def verify_signature(raw: bytes, signature: str | None, secret: str | None) -> None:
    if not secret:
        # Unsigned callbacks are never accepted
        logger.error("Webhook secret not configured, rejecting callback")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Webhook not configured")
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    if not hmac.compare_digest(sign_payload(secret, raw), signature.strip().lower()):
        logger.warning("Invalid webhook signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")


async def require_provider_signature(request: Request) -> None:
    """Dependency for provider webhooks; reads the raw body before parsing."""
    raw = await request.body()
    verify_signature(raw, request.headers.get(SIGNATURE_HEADER), settings.DIDIT_WEBHOOK_SECRET)
