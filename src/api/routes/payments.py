"""
Payment events
==============

POST /api/v1/payments/events -- outcome reported by the payment processor

The processor authenticates with a shared secret in ``X-Webhook-Secret``.
Events are idempotent: replaying a success that was already applied is a
no-op.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_outbox
from src.api.middleware import limiter
from src.api.schemas import PaymentEventRequest, PaymentStatusResponse
from src.config import settings
from src.domain.enums import PaymentOutcome
from src.services.bookings import record_payment_failed, record_payment_succeeded
from src.services.notifications import Outbox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/events",
    response_model=PaymentStatusResponse,
    summary="Apply a payment outcome to a booking",
    responses={
        401: {"description": "Missing or wrong webhook secret"},
        503: {"description": "Webhook secret not configured"},
    },
)
@limiter.limit(settings.rate_limit)
async def payment_event(
    request: Request,
    body: PaymentEventRequest,
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
    x_webhook_secret: Optional[str] = Header(None),
):
    secret = settings.payment_webhook_secret
    if not secret:
        logger.error("Payment event rejected: PAYMENT_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=503, detail="Payment webhook is not configured")
    if x_webhook_secret is None or not hmac.compare_digest(
        x_webhook_secret.encode(), secret.encode()
    ):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    if body.outcome is PaymentOutcome.FAILED:
        return await record_payment_failed(db, body.booking_reference)
    return await record_payment_succeeded(
        db, body.booking_reference, body.method, outbox=outbox
    )
