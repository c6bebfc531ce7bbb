"""
Background job scheduler for the wagerbook engine.

Jobs:
- Ingestion cycle (every INGESTION_INTERVAL_MINUTES)
- Settlement sweep for finished games with pending wagers
  (every SETTLEMENT_SWEEP_MINUTES)
- Retention pruning of old finished games (daily)

Every job runs with max_instances=1 and coalesce=True, so a slow cycle is
never overlapped by the next one and missed runs collapse into one.

Scheduler: APScheduler (AsyncIOScheduler, FastAPI-compatible)
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from wagerbook.core.config import settings
from wagerbook.core.database import session_scope
from wagerbook.core.logging import correlation_scope

logger = logging.getLogger(__name__)


# ============================================================================
# JOBS
# ============================================================================

async def run_ingestion_job():
    """One ingestion cycle in its own session and correlation scope."""
    from wagerbook.services.sync.orchestrator import IngestionOrchestrator

    with correlation_scope("ingest"), session_scope() as db:
        try:
            result = await IngestionOrchestrator(db).trigger_ingestion_cycle()
            logger.info(
                f"Ingestion job: {result['odds']['processed']} odds, "
                f"{result['results']['processed']} results, "
                f"{len(result['finished_games'])} finished ({result['duration_ms']}ms)"
            )
        except Exception:
            logger.exception("Ingestion job failed")


async def run_settlement_sweep_job():
    """Settle every finished game that still has pending wagers."""
    from wagerbook.services.betting.settlement_engine import SettlementEngine

    with correlation_scope("settle"), session_scope() as db:
        try:
            summaries = SettlementEngine(db).settle_all_finished()
            if summaries:
                logger.info(f"Settlement sweep: {len(summaries)} games processed")
        except Exception:
            logger.exception("Settlement sweep failed")


async def run_prune_job():
    """Archive finished games past the retention horizon."""
    from wagerbook.services.sync.lifecycle_monitor import LifecycleMonitor

    with correlation_scope("prune"), session_scope() as db:
        try:
            archived = LifecycleMonitor(db).prune()
            logger.info(f"Prune job: {archived} games archived")
        except Exception:
            logger.exception("Prune job failed")


class EngineScheduler:
    """
    Scheduler for the engine's recurring jobs.

    All scheduled jobs are registered here with their triggers; the job
    bodies live in the module-level ``run_*_job`` functions so the CLI can
    run them once without a scheduler.
    """

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting engine scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': 300
            }
        )

        self._schedule_ingestion()
        self._schedule_settlement_sweep()
        self._schedule_prune()

        self.scheduler.start()
        self.running = True

        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=True)
        self.running = False
        logger.info("Scheduler stopped")

    def _schedule_ingestion(self):
        """
        Schedule: Ingestion cycle (odds, results, lifecycle, settlement).

        Frequency: Every INGESTION_INTERVAL_MINUTES
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            run_ingestion_job,
            trigger=IntervalTrigger(minutes=settings.INGESTION_INTERVAL_MINUTES),
            id='ingestion_cycle',
            name='Ingestion Cycle',
        )
        logger.info(f"Scheduled: Ingestion cycle (every {settings.INGESTION_INTERVAL_MINUTES} min)")

    def _schedule_settlement_sweep(self):
        """
        Schedule: Settlement sweep.

        Frequency: Every SETTLEMENT_SWEEP_MINUTES
        Purpose: Retry wagers left pending by a failed settlement pass
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            run_settlement_sweep_job,
            trigger=IntervalTrigger(minutes=settings.SETTLEMENT_SWEEP_MINUTES),
            id='settlement_sweep',
            name='Settlement Sweep',
        )
        logger.info(f"Scheduled: Settlement sweep (every {settings.SETTLEMENT_SWEEP_MINUTES} min)")

    def _schedule_prune(self):
        """
        Schedule: Retention pruning.

        Frequency: Daily at 4AM scheduler time
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            run_prune_job,
            trigger=CronTrigger(hour=4, minute=0, timezone=settings.SCHEDULER_TIMEZONE),
            id='retention_prune',
            name='Retention Prune',
            misfire_grace_time=3600,
        )
        logger.info("Scheduled: Retention prune (daily 4AM)")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            next_run_str = next_run.strftime('%Y-%m-%d %H:%M %Z') if next_run else 'Pending'
            logger.info(f"  {job.name} (id={job.id}) next run: {next_run_str}")


# Global scheduler instance
_scheduler: Optional[EngineScheduler] = None


async def start_scheduler():
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = EngineScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[EngineScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
