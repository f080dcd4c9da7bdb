"""Payment router - checkout, confirmation, refunds and the Dodo webhook"""

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...cache import cache
from ...config import DODO_PAYMENTS_WEBHOOK_SECRET
from ...database import get_db
from ...models import User, UserRole
from ...rate_limiter import create_rate_limiter
from ...shared.pagination import Page
from ...webhook_security import verify_dodo_webhook
from .schemas import (
    CheckoutResponse,
    DoctorEarnings,
    PaymentCreate,
    PaymentRefund,
    PaymentResponse,
    ProcessPaymentResponse,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])
webhooks_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

rate_limit_checkout = create_rate_limiter(limit=10, window_seconds=60, key_prefix="payment_checkout")
rate_limit_payment_webhook = create_rate_limiter(
    limit=100, window_seconds=60, key_prefix="payment_webhook", use_ip=True
)

# Processed webhook ids are remembered for a day
WEBHOOK_IDEMPOTENCY_TTL = 86400


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("", response_model=CheckoutResponse, status_code=201)
async def create_payment(
    data: PaymentCreate,
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_checkout),
):
    """Create a checkout session for an accepted appointment"""
    return await service.create_payment(data.appointment_id, current_user)


@router.post("/{payment_id}/process", response_model=ProcessPaymentResponse)
async def process_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Check the payment with the provider and confirm the appointment on success"""
    return await service.process_payment(payment_id, current_user)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: int,
    data: PaymentRefund,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.refund_payment(payment_id, data.reason)


# ============================================================================
# HISTORY AND EARNINGS
# ============================================================================


@router.get("/history", response_model=Page[PaymentResponse])
async def get_payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment_history(current_user, page, limit)


@router.get("/earnings", response_model=DoctorEarnings)
async def get_doctor_earnings(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_roles(UserRole.DOCTOR)),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_doctor_earnings(current_user, start_date, end_date)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment(payment_id, current_user)


# ============================================================================
# WEBHOOK
# ============================================================================


@webhooks_router.post("/payments")
async def handle_payment_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_payment_webhook),
):
    """
    Verify signature and apply payment events.

    Headers (Standard Webhooks):
      - 'webhook-signature': 'v1,{base64(hmac_sha256(webhook-id.webhook-timestamp.payload))}'
      - 'webhook-id': Unique webhook ID for idempotency
      - 'webhook-timestamp': Unix timestamp (seconds)
    """
    if not DODO_PAYMENTS_WEBHOOK_SECRET:
        logger.error("❌ DODO_PAYMENTS_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    _, raw_body = await verify_dodo_webhook(request, DODO_PAYMENTS_WEBHOOK_SECRET, raise_on_failure=True)

    webhook_id = request.headers.get("webhook-id", "unknown")
    idempotency_key = f"webhook_processed:{webhook_id}"
    if cache.get(idempotency_key):
        logger.info(f"🔄 Webhook {webhook_id} already processed, skipping (idempotency)")
        return {"status": "already_processed", "webhook_id": webhook_id}

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Failed to parse webhook JSON: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    event_type = event.get("type")
    logger.info(f"🔔 Payment webhook id={webhook_id} type={event_type}")
    result = await service.handle_webhook_event(event_type, event.get("data") or {})

    cache.set(idempotency_key, True, ttl=WEBHOOK_IDEMPOTENCY_TTL)
    return {"status": "ok", "result": result}
