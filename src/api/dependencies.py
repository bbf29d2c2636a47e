"""FastAPI dependency injection helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.enums import UserRole
from src.infrastructure.database import async_session_factory
from src.infrastructure.models import UserModel
from src.infrastructure.notifier import Notifier, build_notifier
from src.infrastructure.payments import PaymentGateway, build_payment_gateway
from src.infrastructure.repositories import UserRepository
from src.services.notifications import Outbox


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier(settings)


@lru_cache
def get_payment_gateway() -> Optional[PaymentGateway]:
    return build_payment_gateway(settings)


async def get_outbox(
    background_tasks: BackgroundTasks,
    notifier: Notifier = Depends(get_notifier),
) -> Outbox:
    """Notifications queued during the request go out after the response."""
    outbox = Outbox()
    background_tasks.add_task(outbox.flush, notifier)
    return outbox


# ── Identity stand-in ─────────────────────────────────────────────────
# Sessions / login live outside this service; the gateway in front of it
# forwards the authenticated user id.


async def get_optional_user(
    x_user_id: Optional[int] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[UserModel]:
    if x_user_id is None:
        return None
    return await UserRepository(db).get_by_id(x_user_id)


async def get_current_user(
    user: Optional[UserModel] = Depends(get_optional_user),
) -> UserModel:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_role(role: UserRole):
    async def _check(user: UserModel = Depends(get_current_user)) -> UserModel:
        if user.role is not role:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _check


require_admin = require_role(UserRole.ADMIN)
require_customer = require_role(UserRole.CUSTOMER)
require_driver = require_role(UserRole.DRIVER)
