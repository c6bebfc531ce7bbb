#!/usr/bin/env python3
"""
Operator runner for the wagerbook engine.

Runs the engine scheduler as a standalone service, or runs a single entry
point once and exits. It can be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py                    # Run the scheduler in foreground
    python run_scheduler.py --ingest-once      # One ingestion cycle, then exit
    python run_scheduler.py --settle GAME_ID   # Settle one finished game
    python run_scheduler.py --settle-all       # Settle every finished game with pending wagers
    python run_scheduler.py --cancel-game ID   # Cancel a scheduled game and refund its wagers
"""
import argparse
import asyncio
import json
import signal
import sys

from wagerbook.core.config import settings
from wagerbook.core.database import init_db, session_scope
from wagerbook.core.logging import configure_logging, correlation_scope, get_logger
from wagerbook.core.scheduler import EngineScheduler

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the engine scheduler."""

    def __init__(self):
        self.scheduler: EngineScheduler = None
        self.shutdown = False

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("Starting scheduler runner...")

        self.scheduler = EngineScheduler()
        await self.scheduler.start()

        logger.info("Scheduler is now running; press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        while not self.shutdown:
            await asyncio.sleep(1)

        await self.scheduler.stop()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        """Set shutdown flag."""
        logger.info("Shutdown signal received")
        self.shutdown = True


async def run_ingest_once() -> dict:
    """Run one ingestion cycle."""
    from wagerbook.services.sync.orchestrator import IngestionOrchestrator

    with correlation_scope("cli-ingest"), session_scope() as db:
        return await IngestionOrchestrator(db).trigger_ingestion_cycle()


def run_settle(game_id: str) -> dict:
    """Settle one game."""
    from wagerbook.services.betting.settlement_engine import SettlementEngine

    with correlation_scope("cli-settle"), session_scope() as db:
        return SettlementEngine(db).trigger_settlement_for_game(game_id)


def run_settle_all() -> list:
    """Settle every finished game with pending wagers."""
    from wagerbook.services.betting.settlement_engine import SettlementEngine

    with correlation_scope("cli-settle"), session_scope() as db:
        return SettlementEngine(db).settle_all_finished()


def run_cancel_game(game_id: str) -> dict:
    """Cancel one scheduled game."""
    from wagerbook.services.betting.settlement_engine import SettlementEngine

    with correlation_scope("cli-cancel"), session_scope() as db:
        return SettlementEngine(db).cancel_game(game_id)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the wagerbook engine scheduler or a single engine task'
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        '--ingest-once',
        action='store_true',
        help='Run one ingestion cycle and exit'
    )
    group.add_argument(
        '--settle',
        type=str,
        metavar='GAME_ID',
        help='Settle pending wagers on one finished game and exit'
    )
    group.add_argument(
        '--settle-all',
        action='store_true',
        help='Settle every finished game that still has pending wagers and exit'
    )
    group.add_argument(
        '--cancel-game',
        type=str,
        metavar='GAME_ID',
        help='Cancel a scheduled game, refund its pending wagers and exit'
    )

    args = parser.parse_args()

    init_db()

    try:
        if args.ingest_once:
            result = asyncio.run(run_ingest_once())
        elif args.settle:
            result = run_settle(args.settle)
        elif args.settle_all:
            result = run_settle_all()
        elif args.cancel_game:
            result = run_cancel_game(args.cancel_game)
        else:
            asyncio.run(SchedulerRunner().start())
            return 0
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0
    except Exception:
        logger.exception("Engine task failed")
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == '__main__':
    sys.exit(main())
