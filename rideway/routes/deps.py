"""Shared route dependencies."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from rideway.models.user import User
from rideway.services.database import get_db
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.utils.notification_tracker import DueCheckRateLimiter, NotificationDebouncer
from sqlalchemy.ext.asyncio import AsyncSession


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> str:
    """
    Acting user, taken from the X-User-Id header.

    Session handling lives in front of this service; the header carries the
    user it authenticated.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if await db.get(User, x_user_id) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id


def get_debouncer(request: Request) -> NotificationDebouncer:
    return request.app.state.debouncer


def get_rate_limiter(request: Request) -> DueCheckRateLimiter:
    return request.app.state.rate_limiter


def get_dispatcher(
    request: Request, db: AsyncSession = Depends(get_db)
) -> IntegrationDispatcher:
    """Dispatcher bound to the request session and the app-wide HTTP client."""
    return IntegrationDispatcher(db, client=getattr(request.app.state, "http_client", None))
