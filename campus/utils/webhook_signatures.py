"""
Webhook signature validation - verify incoming webhooks are authentic.

All sources share one contract: x-webhook-signature carries
hex(HMAC-SHA256(WEBHOOK_SECRET, raw request body)).
Verification runs on the exact bytes received, before any JSON parsing.
"""
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-webhook-signature"


def validate_hmac_sha256(
    secret: str,
    signature: str,
    body: bytes,
    header_prefix: str = "sha256=",
) -> bool:
    """
    Validate HMAC-SHA256 webhook signature.
    Handles signatures with optional prefix (e.g., "sha256=...").
    Returns True if valid, False if invalid.
    """
    if not secret or not signature:
        return False

    sig = signature.strip()
    if sig.startswith(header_prefix):
        sig = sig[len(header_prefix):]

    try:
        expected = hmac.new(
            secret.encode("utf-8"),
            body,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, sig.lower())
    except Exception as e:
        logger.error("HMAC-SHA256 validation error: %s", str(e))
        return False


def sign_payload(secret: str, body: bytes) -> str:
    """Compute the hex signature a caller must send for this body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def compute_payload_hash(body: bytes) -> str:
    """Compute SHA-256 hash of raw payload for audit."""
    return hashlib.sha256(body).hexdigest()


def verify_webhook_request(headers, body: bytes) -> bool:
    """Check the signature header of an inbound webhook against WEBHOOK_SECRET."""
    from campus.config import get_settings
    settings = get_settings()

    signature = headers.get(SIGNATURE_HEADER, "")
    if not signature:
        logger.warning("Missing %s header", SIGNATURE_HEADER)
        return False
    return validate_hmac_sha256(settings.webhook_secret, signature, body)
