"""Push scheduler: fire dispatch passes at fixed daily wall-clock times.

Wraps an APScheduler BackgroundScheduler with one cron job per configured
time. Jobs run on the scheduler's worker pool and never block the caller.

- Triggers fire in the server's local time zone
- Each job has max_instances=1 and coalesce=True; misfires after downtime
  collapse into at most one run
- The dispatch job's own single-flight guard covers overlap across entries
- stop() does not wait for an in-flight pass; owners drain it with
  DispatchJob.wait_for_idle() before closing the push gateway
"""

from collections.abc import Sequence
from datetime import tzinfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from precious.logging import get_logger
from precious.services.dispatch import DispatchJob

logger = get_logger(__name__)

DEFAULT_TIMES: tuple[tuple[int, int], ...] = ((10, 0), (15, 0), (20, 0))
MISFIRE_GRACE_S = 300


def job_id_for(hour: int, minute: int) -> str:
    return f"push-{hour:02d}:{minute:02d}"


class PushScheduler:
    """Start/stop lifecycle around the daily push triggers."""

    def __init__(
        self,
        dispatch_job: DispatchJob,
        times: Sequence[tuple[int, int]] = DEFAULT_TIMES,
        timezone: tzinfo | str | None = None,
    ):
        # Duplicate times would register the same job id twice
        self._times = sorted(set(times))
        self._dispatch_job = dispatch_job
        self._timezone = timezone
        self._scheduler: BackgroundScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def job_ids(self) -> list[str]:
        if self._scheduler is None:
            return []
        return [job.id for job in self._scheduler.get_jobs()]

    def start(self) -> None:
        """Register one cron job per time and start firing. Idempotent."""
        if self.is_running:
            logger.info("push_scheduler_already_running")
            return

        scheduler_kwargs = {"timezone": self._timezone} if self._timezone else {}
        scheduler = BackgroundScheduler(**scheduler_kwargs)

        for hour, minute in self._times:
            trigger_kwargs = {"timezone": self._timezone} if self._timezone else {}
            label = f"{hour:02d}:{minute:02d}"
            scheduler.add_job(
                self._dispatch_job.run_pass,
                CronTrigger(hour=hour, minute=minute, **trigger_kwargs),
                id=job_id_for(hour, minute),
                kwargs={"trigger": label},
                max_instances=1,
                coalesce=True,
                misfire_grace_time=MISFIRE_GRACE_S,
                replace_existing=True,
            )

        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "push_scheduler_started",
            times=[f"{hour:02d}:{minute:02d}" for hour, minute in self._times],
        )

    def stop(self) -> None:
        """Stop firing. An in-flight pass is not interrupted. Idempotent."""
        if self._scheduler is None:
            return

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("push_scheduler_stopped")
