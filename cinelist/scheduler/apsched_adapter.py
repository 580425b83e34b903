"""APScheduler wrapper exposing higher level helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleSettings
from ..logging_conf import configure_logging

HARVEST_JOB_ID = "pipeline::harvest"
SYNC_JOB_ID = "pipeline::radarr-sync"


class APSchedulerAdapter:
    """Manage the recurring harvest and Radarr synchronisation jobs."""

    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler(timezone=timezone.utc)
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_job(
        self,
        job_id: str,
        callback: Callable[[], None],
        settings: ScheduleSettings,
    ) -> None:
        kwargs: dict[str, Any] = {
            "trigger": self._build_trigger(settings),
            "id": job_id,
            "replace_existing": True,
            "max_instances": 1,
            "coalesce": True,
        }
        if settings.run_on_start:
            kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(callback, **kwargs)
        self.logger.info("job_scheduled", job=job_id, schedule=settings.model_dump())

    def schedule_harvest(self, callback: Callable[[], None], settings: ScheduleSettings) -> None:
        self.schedule_job(HARVEST_JOB_ID, callback, settings)

    def schedule_library_sync(self, callback: Callable[[], None], settings: ScheduleSettings) -> None:
        self.schedule_job(SYNC_JOB_ID, callback, settings)

    def remove_job(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=job_id)

    @staticmethod
    def _build_trigger(settings: ScheduleSettings) -> IntervalTrigger:
        return IntervalTrigger(seconds=settings.interval_hours * 3600, timezone=timezone.utc)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "HARVEST_JOB_ID", "SYNC_JOB_ID"]
