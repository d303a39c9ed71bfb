"""Tests for the APScheduler inbox refresh job."""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from workout_relay.scheduler.jobs import _refresh_inbox, build_scheduler


class TestBuildScheduler:
    def test_returns_scheduler(self):
        scheduler = build_scheduler(MagicMock())
        assert isinstance(scheduler, AsyncIOScheduler)

    def test_inbox_reload_job_registered(self):
        scheduler = build_scheduler(MagicMock())
        job_ids = [job.id for job in scheduler.get_jobs()]
        assert "inbox_reload" in job_ids

    def test_job_is_interval(self):
        scheduler = build_scheduler(MagicMock())
        job = next(j for j in scheduler.get_jobs() if j.id == "inbox_reload")
        assert job.trigger.__class__.__name__ == "IntervalTrigger"

    def test_interval_from_settings(self):
        """Scheduler respects the INBOX_RELOAD_SECONDS setting."""
        with patch("workout_relay.scheduler.jobs.get_settings") as mock_settings:
            mock_settings.return_value.inbox_reload_seconds = 15
            scheduler = build_scheduler(MagicMock())

        job = next(j for j in scheduler.get_jobs() if j.id == "inbox_reload")
        assert job.trigger.interval == timedelta(seconds=15)

    def test_job_gets_the_inbox(self):
        inbox = MagicMock()
        scheduler = build_scheduler(inbox)
        job = next(j for j in scheduler.get_jobs() if j.id == "inbox_reload")
        assert job.kwargs == {"inbox": inbox}

    def test_scheduler_not_running_on_creation(self):
        """build_scheduler should not auto-start."""
        scheduler = build_scheduler(MagicMock())
        assert not scheduler.running


class TestRefreshInboxJob:
    def test_reloads_inbox(self):
        inbox = MagicMock()
        _refresh_inbox(inbox)
        inbox.reload.assert_called_once_with()

    def test_exception_does_not_propagate(self):
        """The job catches everything so the scheduler stays alive."""
        inbox = MagicMock()
        inbox.reload.side_effect = PermissionError("inbox unreadable")
        _refresh_inbox(inbox)  # should not raise


class TestSchedulerUnderEventLoop:
    @pytest.mark.asyncio
    async def test_starts_and_runs_reload(self):
        """Started under a running loop, the job reloads the inbox off the loop thread."""
        inbox = MagicMock()
        with patch("workout_relay.scheduler.jobs.get_settings") as mock_settings:
            mock_settings.return_value.inbox_reload_seconds = 3600
            scheduler = build_scheduler(inbox)

        scheduler.start()
        try:
            assert scheduler.running
            scheduler.get_job("inbox_reload").modify(next_run_time=datetime.now(timezone.utc))
            for _ in range(100):
                if inbox.reload.called:
                    break
                await asyncio.sleep(0.02)
        finally:
            scheduler.shutdown(wait=False)

        inbox.reload.assert_called_once_with()
