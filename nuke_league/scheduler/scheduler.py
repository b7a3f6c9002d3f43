"""APScheduler interval jobs, each behind its own single-flight guard."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from nuke_league.config import Settings, settings
from nuke_league.scheduler.guard import SingleFlightGuard
from nuke_league.scheduler.jobs import LeagueJobs, build_default_jobs
from nuke_league.services.draw_service import DrawOutcome
from nuke_league.services.windows import utcnow

STATS_SYNC = "stats_sync"
FEE_CLAIM = "fee_claim"
ELIGIBILITY = "eligibility_check"
DRAW = "prize_draw"
RECONCILE = "payout_reconcile"


@dataclass
class RunStats:
    runs: int = 0
    skipped: int = 0
    failures: int = 0
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None


def _unsuccessful(result: Any) -> str | None:
    # A draw that ends without paying returns normally; keep its reason visible.
    if isinstance(result, DrawOutcome) and not result.success:
        return f"{result.state.value}: {result.error}"[:500]
    return None


class JobRunner:
    """Runs a job body unless the previous run is still going.

    A skipped tick is dropped, not queued. The guard is released whatever
    the body does, and body exceptions stop here. A draw outcome that did
    not complete is kept as the last error without counting as a failure.
    """

    def __init__(
        self,
        name: str,
        body: Callable[[], Awaitable[Any]],
        guard: SingleFlightGuard | None = None,
    ):
        self.name = name
        self.body = body
        self.guard = guard or SingleFlightGuard(name)
        self.stats = RunStats()

    async def run(self) -> bool:
        """Return False when the tick was skipped."""
        if not self.guard.try_acquire():
            logger.info("Skipping {} - previous run still in progress", self.name)
            self.stats.skipped += 1
            return False

        self.stats.last_started_at = utcnow()
        try:
            result = await self.body()
            self.stats.last_error = _unsuccessful(result)
        except Exception as e:
            logger.exception("Job {} failed: {}", self.name, e)
            self.stats.failures += 1
            self.stats.last_error = str(e)[:500]
        finally:
            self.guard.release()
            self.stats.runs += 1
            self.stats.last_finished_at = utcnow()
        return True


class LeagueScheduler:
    """Owns the APScheduler instance and one runner per job type."""

    def __init__(self, jobs: LeagueJobs, config: Settings = settings):
        self._jobs = jobs
        self._config = config
        self._scheduler: AsyncIOScheduler | None = None
        self.runners: dict[str, JobRunner] = {
            STATS_SYNC: JobRunner(STATS_SYNC, jobs.update_all_traders_stats),
            FEE_CLAIM: JobRunner(FEE_CLAIM, jobs.claim_fees),
            ELIGIBILITY: JobRunner(ELIGIBILITY, jobs.validate_holdings),
            DRAW: JobRunner(DRAW, jobs.perform_draw),
            RECONCILE: JobRunner(RECONCILE, jobs.reconcile),
        }

    def intervals(self) -> dict[str, int]:
        return {
            STATS_SYNC: self._config.STATS_SYNC_INTERVAL_SECONDS,
            FEE_CLAIM: self._config.FEE_CLAIM_INTERVAL_SECONDS,
            ELIGIBILITY: self._config.ELIGIBILITY_INTERVAL_SECONDS,
            DRAW: self._config.DRAW_INTERVAL_SECONDS,
            RECONCILE: self._config.RECONCILE_INTERVAL_SECONDS,
        }

    @property
    def started(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Register every job on its interval. Must be called inside the running loop."""
        if self._scheduler is not None:
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        for name, seconds in self.intervals().items():
            # max_instances > 1 so overlapping ticks reach the guard and get logged
            self._scheduler.add_job(
                self.runners[name].run, "interval",
                seconds=seconds,
                id=name,
                name=name,
                max_instances=3,
                coalesce=True,
            )
            logger.info("Job scheduled: {} every {}s", name, seconds)

        if self._config.INITIAL_SYNC_DELAY_SECONDS >= 0:
            self._scheduler.add_job(
                self.runners[STATS_SYNC].run, "date",
                run_date=datetime.now(timezone.utc)
                + timedelta(seconds=self._config.INITIAL_SYNC_DELAY_SECONDS),
                id=f"{STATS_SYNC}_initial",
                name=f"{STATS_SYNC}_initial",
            )

        self._scheduler.start()
        logger.info(
            "Scheduler started with {} jobs (draws {}, fee claiming {})",
            len(self._scheduler.get_jobs()),
            "ENABLED" if self._config.SHOULD_PERFORM_DRAWS else "DISABLED",
            "ENABLED" if self._config.SHOULD_CLAIM_FEES else "DISABLED",
        )

    async def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        await self._jobs.close()
        logger.info("Scheduler stopped")

    def status(self) -> list[dict]:
        scheduled = {}
        if self._scheduler is not None:
            scheduled = {job.id: job for job in self._scheduler.get_jobs()}

        result = []
        for name, runner in self.runners.items():
            job = scheduled.get(name)
            result.append({
                "id": name,
                "interval_seconds": self.intervals()[name],
                "next_run": str(job.next_run_time) if job and job.next_run_time else None,
                "running": runner.guard.running,
                "runs": runner.stats.runs,
                "skipped": runner.stats.skipped,
                "failures": runner.stats.failures,
                "last_started_at": runner.stats.last_started_at,
                "last_finished_at": runner.stats.last_finished_at,
                "last_error": runner.stats.last_error,
            })
        return result


_scheduler: LeagueScheduler | None = None


def start_scheduler(jobs: LeagueJobs | None = None) -> LeagueScheduler:
    """Start the application-wide scheduler (idempotent)."""
    global _scheduler
    if _scheduler is None:
        if jobs is None:
            jobs = build_default_jobs()
        _scheduler = LeagueScheduler(jobs)
        _scheduler.start()
    return _scheduler


async def stop_scheduler() -> None:
    global _scheduler
    if _scheduler:
        await _scheduler.shutdown()
        _scheduler = None


def get_scheduler_status() -> list[dict]:
    if not _scheduler:
        return []
    return _scheduler.status()
