"""
APScheduler job that keeps the inbox snapshot fresh.

The transport can drop new files into the inbox directory at any time. This
job rescans on an interval so API readers pick them up without an explicit
POST /workouts/reload. The job is a plain function, so AsyncIOScheduler runs
it in its thread pool and the file I/O stays off the event loop.

The scheduler is started from the API lifespan (see api/main.py).
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from workout_relay.config import get_settings
from workout_relay.inbox.reconciler import WorkoutInbox

logger = logging.getLogger(__name__)


def build_scheduler(inbox: WorkoutInbox) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        inbox: The WorkoutInbox to reload.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _refresh_inbox,
        trigger="interval",
        seconds=settings.inbox_reload_seconds,
        id="inbox_reload",
        replace_existing=True,
        kwargs={"inbox": inbox},
    )

    return scheduler


def _refresh_inbox(inbox: WorkoutInbox) -> None:
    """
    Interval job: rebuild the inbox snapshot from disk.

    Exceptions are logged, never raised, so the scheduler keeps running.
    """
    try:
        inbox.reload()
    except Exception as exc:
        logger.error("Inbox refresh failed: %s", exc)
