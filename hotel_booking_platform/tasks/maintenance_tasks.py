"""
Celery tasks for the daily maintenance sweeps.

Each run opens its own database manager on a fresh event loop; workers share
nothing with the web process.
"""

import asyncio
import logging
from typing import Any, Dict

from .celery_app import celery_app
from ..database import DatabaseManager
from ..services.maintenance_service import run_sweep

logger = logging.getLogger(__name__)


async def _run(sweep: str) -> Dict[str, Any]:
    db = DatabaseManager()
    await db.initialize(create_tables=False)
    try:
        report = await run_sweep(db, sweep)
        return report.to_dict()
    finally:
        await db.close()


def _run_on_new_loop(sweep: str) -> Dict[str, Any]:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_run(sweep))
    finally:
        loop.close()


@celery_app.task(name="auto_checkout_task")
def auto_checkout_task() -> Dict[str, Any]:
    """Check out every stay due by noon today, hotel time."""
    logger.info("Starting auto-checkout task")
    result = _run_on_new_loop("auto_checkout")
    logger.info(result["message"])
    return result


@celery_app.task(name="cancel_expired_bookings_task")
def cancel_expired_bookings_task() -> Dict[str, Any]:
    """Cancel pending bookings whose check-in passed without confirmation."""
    logger.info("Starting cancel-expired-bookings task")
    result = _run_on_new_loop("cancel_expired")
    logger.info(result["message"])
    return result
