"""Dodo Payments service - Integration with Dodo Payments API"""

import logging
from typing import Any, Optional

from dodopayments import AsyncDodoPayments  # type: ignore

from ...config import DODO_ADHOC_PRODUCT_ID, DODO_PAYMENTS_API_KEY, DODO_PAYMENTS_ENVIRONMENT

logger = logging.getLogger(__name__)

# Checkout branding, PatientCare blue
CHECKOUT_THEME = {
    "font_size": "md",
    "radius": "8px",
    "pay_button_text": "Pay Consultation Fee",
    "light": {
        "bg_primary": "#ffffff",
        "bg_secondary": "#f8fafc",
        "text_primary": "#0f172a",
        "text_secondary": "#64748b",
        "button_primary": "#2563eb",
        "button_primary_hover": "#1d4ed8",
        "button_text_primary": "#ffffff",
        "input_focus_border": "#2563eb",
    },
}


def normalize_dodo_environment(env: Optional[str]) -> str:
    """Normalize Dodo environment value to expected format"""
    value = (env or "test_mode").strip().lower()
    if value in {"live", "production", "prod"}:
        return "live_mode"
    if value in {"test", "sandbox", "staging", "dev", "development"}:
        return "test_mode"
    if value in {"test_mode", "live_mode"}:
        return value
    logger.warning(f"Unknown DODO environment '{env}', defaulting to test_mode")
    return "test_mode"


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK model or a plain dict"""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class DodoPaymentsError(Exception):
    """Dodo Payments is not configured or the API call failed"""


class DodoPaymentsService:
    """Service for Dodo Payments API operations"""

    def __init__(self):
        self.api_key = DODO_PAYMENTS_API_KEY
        self.environment = normalize_dodo_environment(DODO_PAYMENTS_ENVIRONMENT)
        self.product_id = DODO_ADHOC_PRODUCT_ID
        self.client = None

        if not self.api_key:
            logger.warning("DODO_PAYMENTS_API_KEY not set; payment endpoints will fail until configured")
        else:
            self.client = AsyncDodoPayments(bearer_token=self.api_key, environment=self.environment)
            logger.info(f"Dodo Payments client initialized (env={self.environment})")

    def is_available(self) -> bool:
        """Check if Dodo Payments client is available"""
        return self.client is not None and bool(self.product_id)

    def _require_client(self):
        if not self.is_available():
            raise DodoPaymentsError("Dodo Payments client not initialized")
        return self.client

    async def create_checkout_session(
        self,
        amount: float,
        customer_email: str,
        customer_name: str,
        return_url: str,
        metadata: Optional[dict] = None,
    ) -> Any:
        """Create a checkout for the ad-hoc consultation product at the given price"""
        client = self._require_client()
        try:
            return await client.checkout_sessions.create(
                product_cart=[{"product_id": self.product_id, "quantity": 1, "amount": to_cents(amount)}],
                customer={"email": customer_email, "name": customer_name},
                return_url=return_url,
                metadata={k: str(v) for k, v in (metadata or {}).items()},
                customization={"theme_config": CHECKOUT_THEME},
            )
        except Exception as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise DodoPaymentsError(str(e)) from e

    async def get_payment(self, payment_id: str) -> Any:
        """Retrieve a payment by its Dodo id"""
        client = self._require_client()
        try:
            return await client.payments.retrieve(payment_id)
        except Exception as e:
            logger.error(f"Failed to get payment {payment_id}: {e}")
            raise DodoPaymentsError(str(e)) from e

    async def create_refund(self, payment_id: str, reason: Optional[str] = None) -> Any:
        """Refund a payment in full"""
        client = self._require_client()
        try:
            return await client.refunds.create(payment_id=payment_id, reason=reason)
        except Exception as e:
            logger.error(f"Failed to refund payment {payment_id}: {e}")
            raise DodoPaymentsError(str(e)) from e


# Singleton instance
dodo_service = DodoPaymentsService()
