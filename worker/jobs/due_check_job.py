"""Date-based maintenance due check job."""

import logging
from datetime import date
from typing import Optional

import httpx
from rideway.services.due_notifier import DueCheckResult, check_all_users
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.utils.notification_tracker import NotificationDebouncer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from worker.config import settings

logger = logging.getLogger(__name__)


async def run_due_check(
    debouncer: NotificationDebouncer,
    session_maker: Optional[async_sessionmaker] = None,
    as_of: Optional[date] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> DueCheckResult:
    """
    Send maintenance_due for every task that became due by date today.

    Args:
        debouncer: Cooldown guard kept for the life of the worker
        session_maker: Session factory; a fresh engine on DATABASE_URL is
            created and disposed when omitted
        as_of: Day to check (defaults to today)
        client: HTTP client for integration calls (one per run when omitted)
    """
    logger.info("Running maintenance due check job...")

    engine = None
    if session_maker is None:
        engine = create_async_engine(settings.DATABASE_URL)
        session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_maker() as db:
            result = await check_all_users(
                db,
                debouncer=debouncer,
                dispatcher=IntegrationDispatcher(db, client=client),
                as_of=as_of,
            )

        logger.info(
            f"Due check job finished: {result.message} "
            f"({result.notifications_sent} notifications sent)"
        )
        return result

    except Exception as e:
        logger.error(f"Error in due check job: {e}", exc_info=True)
        return DueCheckResult(success=False, message=str(e))

    finally:
        if engine is not None:
            await engine.dispose()
