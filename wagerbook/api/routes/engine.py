"""Engine routes for ingestion and settlement management.

Provides endpoints for:
- Manual ingestion cycle trigger
- Manual settlement for one game, or a sweep of all finished games
- Cancelling a scheduled game (refunds its pending wagers)
- The manual review queue (games finished without a confirmed result)
- Engine status: last ingestion cycle, scheduler, circuit breakers

These call the same entry points as the scheduler and the operator CLI.
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wagerbook.api.errors import http_error
from wagerbook.api.schemas import GameResponse
from wagerbook.core.database import get_db
from wagerbook.core.exceptions import WagerError
from wagerbook.core.scheduler import get_scheduler
from wagerbook.repositories import GameRepository
from wagerbook.services.betting.settlement_engine import SettlementEngine
from wagerbook.services.feeds.circuit_breaker import get_all_breaker_states
from wagerbook.services.sync.orchestrator import IngestionOrchestrator, get_last_cycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/engine", tags=["engine"])


def get_orchestrator(db: Session = Depends(get_db)) -> IngestionOrchestrator:
    """Dependency to get ingestion orchestrator instance."""
    return IngestionOrchestrator(db)


def get_settlement_engine(db: Session = Depends(get_db)) -> SettlementEngine:
    """Dependency to get settlement engine instance."""
    return SettlementEngine(db)


@router.post("/ingest")
async def trigger_ingestion(
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """Run one ingestion cycle now and return its summary."""
    logger.info("Manual ingestion cycle triggered")
    return await orchestrator.trigger_ingestion_cycle()


@router.post("/settle/{game_id}")
async def settle_game(
    game_id: str,
    engine: SettlementEngine = Depends(get_settlement_engine),
) -> Dict:
    """Settle pending wagers on one finished game (safe to repeat)."""
    try:
        return engine.trigger_settlement_for_game(game_id)
    except WagerError as e:
        raise http_error(e)


@router.post("/settle")
async def settle_all(engine: SettlementEngine = Depends(get_settlement_engine)) -> Dict:
    """Settle every finished game that still has pending wagers."""
    summaries = engine.settle_all_finished()
    return {
        'games': len(summaries),
        'summaries': summaries,
    }


@router.post("/cancel/{game_id}")
async def cancel_game(
    game_id: str,
    engine: SettlementEngine = Depends(get_settlement_engine),
) -> Dict:
    """Cancel a scheduled game and refund its pending wagers (safe to repeat)."""
    try:
        return engine.cancel_game(game_id)
    except WagerError as e:
        raise http_error(e)


@router.get("/review-queue", response_model=List[GameResponse])
async def get_review_queue(db: Session = Depends(get_db)):
    """Games finished without a confirmed result."""
    return GameRepository(db).find_review_queue()


@router.get("/status")
async def get_engine_status() -> Dict:
    """Last ingestion cycle summary, scheduler state and breaker states."""
    scheduler = get_scheduler()
    jobs = []
    if scheduler and scheduler.running and scheduler.scheduler:
        jobs = [
            {
                'id': job.id,
                'name': job.name,
                'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.scheduler.get_jobs()
        ]

    return {
        'last_cycle': get_last_cycle(),
        'scheduler': {
            'running': bool(scheduler and scheduler.running),
            'jobs': jobs,
        },
        'circuit_breakers': get_all_breaker_states(),
    }
