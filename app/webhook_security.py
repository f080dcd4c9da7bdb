"""
Webhook Security Module

Signature verification for inbound provider webhooks (Dodo Payments, Zoom).
- Constant-time signature comparison
- Timestamp validation against replays
- Raw body is read once and returned to the caller for parsing
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time"""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload as hex"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def extract_svix_signing_key(secret: str) -> bytes:
    """
    Extract Standard Webhooks signing key bytes from a whsec_ style secret.

    - Incoming secret typically looks like: "whsec_BASE64KEY"
    - The HMAC key is the base64-decoded part after "whsec_"
    - Secrets that are not valid base64 are used as raw UTF-8 bytes
    """
    encoded = secret[6:] if secret.startswith("whsec_") else secret
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return secret.encode("utf-8")


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string (seconds)
        max_age: Maximum age in seconds
    """
    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    age = abs(int(time.time()) - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def _reject(raise_on_failure: bool, detail: str):
    if raise_on_failure:
        raise HTTPException(status_code=401, detail=detail)


def compute_dodo_signature(secret: str, webhook_id: str, timestamp: str, body: bytes) -> str:
    """Standard Webhooks signature over webhook-id.webhook-timestamp.payload"""
    signed_message = b".".join([webhook_id.encode("utf-8"), timestamp.encode("utf-8"), body])
    digest = hmac.new(extract_svix_signing_key(secret), signed_message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


async def verify_dodo_webhook(
    request: Request, secret: str, raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify Dodo Payments webhook signature (Standard Webhooks).

    The signature header carries one or more space separated "v1,<base64>"
    entries; any match is accepted.

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()

    signature_header = request.headers.get("webhook-signature", "")
    timestamp = request.headers.get("webhook-timestamp", "")
    webhook_id = request.headers.get("webhook-id", "")

    logger.info(f"📥 Dodo webhook received: id={webhook_id or 'unknown'}")

    if not signature_header or not webhook_id:
        logger.error("❌ Missing webhook-signature or webhook-id header")
        _reject(raise_on_failure, "Missing webhook signature")
        return False, raw_body

    if not timestamp or not verify_timestamp(timestamp):
        logger.error("❌ Webhook timestamp missing, expired or invalid")
        _reject(raise_on_failure, "Webhook timestamp expired")
        return False, raw_body

    expected_signature = compute_dodo_signature(secret, webhook_id, timestamp, raw_body)

    for entry in signature_header.split():
        version, _, received_signature = entry.partition(",")
        if version == "v1" and constant_time_compare(expected_signature, received_signature):
            logger.info(f"✅ Dodo webhook signature verified: {webhook_id}")
            return True, raw_body

    logger.error(f"❌ Dodo webhook signature mismatch for {webhook_id}")
    _reject(raise_on_failure, "Invalid webhook signature")
    return False, raw_body


def compute_zoom_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Zoom signature: v0=hex(HMAC-SHA256(secret, "v0:{timestamp}:{body}"))"""
    message = b"v0:" + timestamp.encode("utf-8") + b":" + body
    return "v0=" + hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


async def verify_zoom_webhook(
    request: Request, secret: str, raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify a Zoom webhook using the x-zm-signature and x-zm-request-timestamp headers.

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()

    signature = request.headers.get("x-zm-signature", "")
    timestamp = request.headers.get("x-zm-request-timestamp", "")

    logger.info("📥 Zoom webhook received")

    if not signature:
        logger.warning("🚫 Zoom webhook missing signature header")
        _reject(raise_on_failure, "Missing webhook signature")
        return False, raw_body

    if not timestamp or not verify_timestamp(timestamp):
        _reject(raise_on_failure, "Webhook timestamp expired")
        return False, raw_body

    if not constant_time_compare(compute_zoom_signature(secret, timestamp, raw_body), signature):
        logger.warning("🚫 Zoom webhook signature mismatch")
        _reject(raise_on_failure, "Invalid webhook signature")
        return False, raw_body

    logger.info("✅ Zoom webhook signature verified")
    return True, raw_body


def zoom_url_validation_response(secret: str, plain_token: str) -> dict:
    """Answer Zoom's endpoint.url_validation challenge"""
    return {
        "plainToken": plain_token,
        "encryptedToken": compute_hmac_sha256(secret, plain_token.encode("utf-8")),
    }
