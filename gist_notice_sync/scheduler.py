"""Scheduler: periodic notice ingestion + daily deadline reminders.

Uses APScheduler to run both cycles as background jobs in the host process.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobEvent
from apscheduler.schedulers.background import BackgroundScheduler

from .config import Settings
from .ingest import run_ingestion_cycle
from .notifier import NotificationDispatcher
from .reminder import run_reminder_cycle
from .store import NoticeStore

LOGGER = logging.getLogger(__name__)

INGESTION_JOB_ID = "academic_ingestion"
REMINDER_JOB_ID = "deadline_reminder"


class RepeatingJob:
    """A cycle function guarded against overlapping runs.

    A firing that arrives while the previous run is still going is skipped.
    """

    def __init__(self, job_id: str, func: Callable[[], Any], trigger: str, **trigger_args: Any):
        self.job_id = job_id
        self.func = func
        self.trigger = trigger
        self.trigger_args = trigger_args
        self.last_run: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run_now(self) -> Any:
        """Run the cycle once; returns its result, or None if a run is in progress."""
        if not self._lock.acquire(blocking=False):
            LOGGER.warning("[Scheduler] %s still running, skipping this firing", self.job_id)
            return None
        started_at = datetime.now(timezone.utc)
        try:
            result = self.func()
            self.last_run = {"started_at": started_at.isoformat(), "status": "ok", "result": result}
            return result
        except Exception as exc:
            self.last_run = {"started_at": started_at.isoformat(), "status": "error", "error": str(exc)}
            raise
        finally:
            self._lock.release()

    def start(self, scheduler: BackgroundScheduler) -> None:
        scheduler.add_job(
            self.run_now,
            trigger=self.trigger,
            id=self.job_id,
            name=self.job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **self.trigger_args,
        )
        self._scheduler = scheduler

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.get_job(self.job_id):
            self._scheduler.remove_job(self.job_id)
        self._scheduler = None


def _on_job_event(event: JobEvent) -> None:
    """Log scheduler job events."""
    if event.exception:
        LOGGER.error("[Scheduler] Job %s failed: %s", event.job_id, event.exception)
    else:
        LOGGER.info("[Scheduler] Job %s executed OK", event.job_id)


class NoticeSyncScheduler:
    """Owns the two recurring jobs and the APScheduler instance running them."""

    def __init__(self, settings: Settings, ingestion: RepeatingJob, reminder: RepeatingJob):
        self.settings = settings
        self.ingestion = ingestion
        self.reminder = reminder
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> BackgroundScheduler:
        if self.running:
            LOGGER.warning("[Scheduler] Already running")
            return self._scheduler

        self._scheduler = BackgroundScheduler(timezone=self.settings.timezone)
        self._scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
        self.ingestion.start(self._scheduler)
        self.reminder.start(self._scheduler)
        self._scheduler.start()
        LOGGER.info(
            "[Scheduler] Started, ingestion every %d min, reminders daily at %s (%s)",
            self.settings.ingest_interval_minutes,
            self.settings.reminder_time.strftime("%H:%M"),
            self.settings.timezone,
        )
        return self._scheduler

    def shutdown(self) -> None:
        if self.running:
            self.ingestion.stop()
            self.reminder.stop()
            self._scheduler.shutdown(wait=False)
            LOGGER.info("[Scheduler] Stopped")
        self._scheduler = None

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            INGESTION_JOB_ID: {"is_running": self.ingestion.is_running, "last_run": self.ingestion.last_run},
            REMINDER_JOB_ID: {"is_running": self.reminder.is_running, "last_run": self.reminder.last_run},
        }


def build_scheduler(
    settings: Settings, store: NoticeStore, dispatcher: NotificationDispatcher
) -> NoticeSyncScheduler:
    ingestion = RepeatingJob(
        INGESTION_JOB_ID,
        lambda: run_ingestion_cycle(store, settings),
        "interval",
        minutes=settings.ingest_interval_minutes,
    )
    reminder = RepeatingJob(
        REMINDER_JOB_ID,
        lambda: run_reminder_cycle(store, dispatcher, settings),
        "cron",
        hour=settings.reminder_time.hour,
        minute=settings.reminder_time.minute,
    )
    return NoticeSyncScheduler(settings, ingestion, reminder)
