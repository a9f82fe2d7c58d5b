"""APScheduler integration for the DCA service.

Runs two independent interval jobs: the execute sweep over due positions and
the vault bookkeeping sweep.
"""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from smart_dca.engine.lifecycle import PositionEngine, SweepReport

logger = logging.getLogger(__name__)

EXECUTE_JOB_ID = "execute_due_positions"
YIELD_JOB_ID = "record_vault_snapshot"

FailureSink = Callable[[str, BaseException], None]


def log_failure(task: str, exc: BaseException):
    """Default failure sink: log with traceback."""
    logger.error(f"Task {task} failed: {exc}", exc_info=exc)


class DCAScheduler:
    """Owns an AsyncIOScheduler with per-task cadences from configuration."""

    def __init__(
        self,
        position_engine: PositionEngine,
        vault_task: Callable[[], Awaitable[object]] | None = None,
        execute_interval_minutes: int = 5,
        yield_interval_minutes: int = 30,
        failure_sink: FailureSink = log_failure,
    ):
        self.position_engine = position_engine
        self.vault_task = vault_task
        self.execute_interval_minutes = execute_interval_minutes
        self.yield_interval_minutes = yield_interval_minutes
        self.failure_sink = failure_sink
        self._scheduler = AsyncIOScheduler()

    async def run_execute_sweep(self) -> SweepReport | None:
        """One pass over due positions. Failures go to the sink, never up to APScheduler."""
        try:
            report = await self.position_engine.run_due_sweep()
        except Exception as e:
            self.failure_sink(EXECUTE_JOB_ID, e)
            return None
        if report.failed:
            logger.warning(
                f"{report.failed} position(s) failed this sweep and stay due: "
                f"{', '.join(report.failed_ids)}"
            )
        return report

    async def run_yield_sweep(self):
        if self.vault_task is None:
            return None
        try:
            return await self.vault_task()
        except Exception as e:
            self.failure_sink(YIELD_JOB_ID, e)
            return None

    def _add_job(self, func, job_id: str, name: str, minutes: int):
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(minutes=minutes),
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )
        logger.info(f"Scheduled {name} every {minutes}m")

    def start(self):
        """Register both sweeps and start the scheduler. Needs a running event loop."""
        self._add_job(
            self.run_execute_sweep, EXECUTE_JOB_ID, "Execute pending DCAs", self.execute_interval_minutes
        )
        if self.vault_task is not None:
            self._add_job(
                self.run_yield_sweep, YIELD_JOB_ID, "Update yield stats", self.yield_interval_minutes
            )
        self._scheduler.start()
        logger.info(f"Scheduler started with {len(self._scheduler.get_jobs())} jobs")

    def stop(self):
        """Shut down the scheduler."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def status(self) -> dict:
        """Return current scheduler state for the API."""
        jobs = self._scheduler.get_jobs()
        return {
            "running": self._scheduler.running,
            "job_count": len(jobs),
            "jobs": [
                {
                    "id": j.id,
                    "name": j.name,
                    "next_run": str(j.next_run_time) if getattr(j, "next_run_time", None) else None,
                    "trigger": str(j.trigger),
                }
                for j in jobs
            ],
        }
