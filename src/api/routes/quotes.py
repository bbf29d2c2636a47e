"""
Quote endpoints
===============

POST /api/v1/quotes/calculate      -- price estimate, nothing persisted
POST /api/v1/quotes                -- create a numbered quote (7-day validity)
GET  /api/v1/quotes/{quote_number} -- fetch a quote
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_optional_user
from src.api.middleware import limiter
from src.api.schemas import (
    PriceEstimateRequest,
    PriceEstimateResponse,
    QuoteResponse,
)
from src.config import settings
from src.domain.enums import QuoteSource, UserRole
from src.domain.errors import NotFound
from src.domain.pricing import PricingRequest
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import QuoteRepository
from src.services.quotes import create_quote, default_engine
from src.services.schemas import QuoteCreateRequest

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post(
    "/calculate",
    response_model=PriceEstimateResponse,
    summary="Calculate a price estimate",
)
@limiter.limit(settings.rate_limit)
async def calculate_price(request: Request, body: PriceEstimateRequest):
    breakdown = default_engine().calculate(
        PricingRequest(
            pickup_postcode=body.pickup_postcode,
            delivery_postcode=body.delivery_postcode,
            vehicle_type=body.vehicle_type,
            is_running=body.is_running,
            transport_type=body.transport_type,
            add_ons=body.add_ons,
        )
    )
    return PriceEstimateResponse.model_validate(breakdown)


@router.post(
    "",
    status_code=201,
    response_model=QuoteResponse,
    summary="Create a quote",
    description=(
        "Prices the request and stores it as a numbered quote valid for "
        "seven days.  Anonymous callers get an unowned quote."
    ),
)
@limiter.limit(settings.rate_limit)
async def post_quote(
    request: Request,
    body: QuoteCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: Optional[UserModel] = Depends(get_optional_user),
):
    customer_id = None
    source = QuoteSource.WEB
    if user is not None and user.role is UserRole.CUSTOMER:
        customer_id = user.id
    elif user is not None and user.role is UserRole.ADMIN:
        source = QuoteSource.ADMIN
    return await create_quote(db, body, customer_id=customer_id, source=source)


@router.get(
    "/{quote_number}",
    response_model=QuoteResponse,
    summary="Get a quote by number",
)
@limiter.limit(settings.rate_limit)
async def get_quote(
    request: Request,
    quote_number: str,
    db: AsyncSession = Depends(get_db),
    user: Optional[UserModel] = Depends(get_optional_user),
):
    quote = await QuoteRepository(db).get_by_number(quote_number)
    if quote is None:
        raise NotFound("Quote not found")
    # Owned quotes are visible to their customer and to admins only
    if quote.customer_id is not None:
        is_owner = user is not None and user.id == quote.customer_id
        is_admin = user is not None and user.role is UserRole.ADMIN
        if not (is_owner or is_admin):
            raise NotFound("Quote not found")
    return quote
