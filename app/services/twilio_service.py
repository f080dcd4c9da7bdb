"""
Twilio SMS Service
Sends platform SMS (appointment updates, reminders) from the PatientCare number
"""

import logging
from typing import Optional

import httpx

from ..config import (
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_FROM_NUMBER,
    TWILIO_MESSAGING_SERVICE_SID,
)
from ..security_utils import mask_sensitive_data

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
SMS_MAX_LENGTH = 1600


def is_configured() -> bool:
    return bool(
        TWILIO_ACCOUNT_SID
        and TWILIO_AUTH_TOKEN
        and (TWILIO_FROM_NUMBER or TWILIO_MESSAGING_SERVICE_SID)
    )


async def send_sms(to_phone: str, message_body: str) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number (E.164 format)
        message_body: SMS message content

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {mask_sensitive_data(to_phone)}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    if not is_configured():
        logger.warning("⚠️ Twilio not configured - SMS skipped")
        return False, "SMS service not configured"

    data = {"To": to_phone, "Body": message_body[:SMS_MAX_LENGTH]}
    if TWILIO_MESSAGING_SERVICE_SID:
        data["MessagingServiceSid"] = TWILIO_MESSAGING_SERVICE_SID
    else:
        data["From"] = TWILIO_FROM_NUMBER

    try:
        logger.info(f"🚀 Sending SMS to {mask_sensitive_data(to_phone)}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data=data,
                timeout=10.0,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Twilio API error: {str(e)}")
        return False, str(e)

    if response.status_code in (200, 201):
        logger.info(f"✅ SMS sent (SID: {response.json().get('sid')})")
        return True, None

    error_data = response.json()
    error_message = error_data.get("message", "Unknown error")
    error_code = error_data.get("code")
    logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
    return False, error_message
