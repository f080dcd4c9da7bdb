"""
Email Service using Resend
Emails are written in MJML and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    email_verification_template,
    frontend_link,
    meeting_link_template,
    notification_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailError(Exception):
    """Raised when an email cannot be compiled or sent"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml_to_html returns a mapping with 'html' and 'errors' keys
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailError(f"Failed to send email: {str(e)}") from e

    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


# ============================================
# Pre-built emails
# ============================================


async def send_notification_email(
    to: str, user_name: str, title: str, message: str, data: Optional[dict] = None
) -> dict:
    """Send a notification by email; meeting links get their own layout"""
    data = data or {}
    if data.get("join_url"):
        mjml_content = meeting_link_template(
            user_name, data.get("start_time", ""), data["join_url"], data.get("password")
        )
    else:
        cta_url = None
        if data.get("appointment_id"):
            cta_url = frontend_link(f"appointments/{data['appointment_id']}")
        mjml_content = notification_template(user_name, title, message, cta_url)

    return await send_email(to=to, subject=title, mjml_content=mjml_content)


async def send_verification_email(to: str, user_name: str, token: str) -> dict:
    """Send the email verification link"""
    mjml_content = email_verification_template(user_name, frontend_link(f"verify-email?token={token}"))
    return await send_email(to=to, subject="Verify Your Email - PatientCare", mjml_content=mjml_content)
