"""
MJML Email Templates
All email templates using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

# Clinical blue/slate color scheme
THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

BRAND_NAME = "PatientCare"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-text font-size="22px" font-weight="700" color="{THEME['primary_dark']}" padding="0">
              {BRAND_NAME}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0 0 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you have a {BRAND_NAME} account.
              Manage notification preferences in your account settings.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def notification_template(user_name: str, title: str, message: str, cta_url: Optional[str] = None) -> str:
    """Generic notification email (appointments, payments, reminders)"""
    content = f"""
    <mj-text>
      Hi {escape(user_name)},
    </mj-text>

    <mj-text>
      {escape(message)}
    </mj-text>
    """
    return get_base_template(
        title=escape(title),
        preview_text=escape(message[:120]),
        content_sections=content,
        cta_url=cta_url,
        cta_label="View in PatientCare" if cta_url else None,
    )


def meeting_link_template(user_name: str, start_time: str, join_url: str, password: Optional[str]) -> str:
    """Video consultation link email"""
    password_row = ""
    if password:
        password_row = f"""
        <mj-text align="center" font-size="14px" color="{THEME['text_muted']}" padding="8px 0 0 0">
          Meeting password: <strong>{escape(password)}</strong>
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {escape(user_name)},
    </mj-text>

    <mj-text>
      Your video consultation is scheduled for <strong>{escape(start_time)} UTC</strong>.
      Join a few minutes early so the doctor can admit you from the waiting room.
    </mj-text>

    <mj-wrapper background-color="{THEME['primary_light']}" padding="24px 20px" border-radius="8px">
      <mj-section padding="0">
        <mj-column>
          <mj-text align="center" font-size="14px" font-weight="600" color="{THEME['text_primary']}" padding="0">
            {escape(join_url)}
          </mj-text>
          {password_row}
        </mj-column>
      </mj-section>
    </mj-wrapper>
    """
    return get_base_template(
        title="Your consultation link is ready",
        preview_text=f"Consultation on {escape(start_time)} UTC",
        content_sections=content,
        cta_url=join_url,
        cta_label="Join Consultation",
    )


def email_verification_template(user_name: str, verify_link: str) -> str:
    """Email address verification link"""
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Please confirm your email to secure your account.
    </mj-text>

    <mj-text>
      Hi {escape(user_name)},
    </mj-text>

    <mj-text>
      Confirm your email address to finish setting up your account. This link expires in 24 hours.
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you didn't create an account, you can safely ignore this email.
    </mj-text>
    """
    return get_base_template(
        title="Verify Your Email Address",
        preview_text="Confirm your email address",
        content_sections=content,
        cta_url=verify_link,
        cta_label="Verify Email",
    )


def frontend_link(path: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"
