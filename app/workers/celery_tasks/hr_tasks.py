"""
HR background tasks
"""
import asyncio
import logging
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from app.core.celery_app import celery_app
from app.core.config import settings

logger = logging.getLogger(__name__)

# Create async engine for background tasks
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def run_async_task(coro):
    """Helper function to run async coroutines in Celery tasks"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.error(f"Error in async task: {e}")
        raise
    finally:
        loop.close()


async def collect_forgotten_checkouts(session: AsyncSession, today: Optional[date] = None) -> dict:
    """List real-time records left open from an earlier day. Nothing is closed automatically."""
    # Import inside function to avoid circular imports
    from app.services.hr.attendance_service import AttendanceService

    service = AttendanceService(session)
    today = today or service.today()
    forgotten = await service.find_forgotten_checkouts(today)

    for record in forgotten:
        logger.warning(
            f"Forgotten check-out: Employee {record.employee_id}, Date: {record.attendance_date}, "
            f"State: {record.current_state.value}"
        )
    logger.info(f"Forgotten check-out report for {today}: {len(forgotten)} open record(s)")

    return {
        "date": today.isoformat(),
        "count": len(forgotten),
        "records": [
            {"employee": r.employee_id, "date": r.attendance_date.isoformat(), "state": r.current_state.value}
            for r in forgotten
        ],
    }


@celery_app.task
def report_forgotten_checkouts(report_date: str = None):
    """Daily task reporting employees who never checked out"""
    async def _report():
        async with async_session_maker() as db:
            today = date.fromisoformat(report_date) if report_date else None
            return await collect_forgotten_checkouts(db, today)

    return run_async_task(_report())
