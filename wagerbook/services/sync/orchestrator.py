"""Ingestion orchestrator: one idempotent cycle of feed reconciliation.

A cycle:
1. Fetches the odds feed and the results feed (today and yesterday in
   MATCH_TIMEZONE). Nothing touches the database until both fetches have
   finished, so no transaction is held open across a network call.
2. Applies odds records: match (creating games for new events), then
   synchronize quotes. One commit per record.
3. Applies results records: match, then lifecycle transitions. One commit
   per record.
4. Force-finishes overdue games the results feed no longer reports.
5. Triggers settlement for every game that moved into finished.

A feed that fails after retries is skipped for the cycle; the other feed
is still applied. A record that fails (ambiguous match, unexpected error)
is rolled back and skipped; the rest of the cycle continues.

The scheduler, the engine routes and the operator CLI all call
``trigger_ingestion_cycle``.
"""
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from wagerbook.core import metrics
from wagerbook.core.config import settings
from wagerbook.core.exceptions import FeedError, MatchingAmbiguity
from wagerbook.services.betting.settlement_engine import SettlementEngine
from wagerbook.services.feeds import OddsFeedClient, ResultsFeedClient
from wagerbook.services.feeds.schemas import OddsRecord, ResultRecord
from wagerbook.services.sync.game_matcher import ExternalGameRef, GameMatcher
from wagerbook.services.sync.lifecycle_monitor import LifecycleMonitor
from wagerbook.services.sync.odds_synchronizer import OddsSynchronizer
from wagerbook.utils.timezone import local_today, utcnow

logger = logging.getLogger(__name__)

# Summary of the most recent cycle in this process
_last_cycle: Optional[Dict] = None


def get_last_cycle() -> Optional[Dict]:
    """Summary of the most recent ingestion cycle, or None if none has run."""
    return _last_cycle


class IngestionOrchestrator:
    """
    Coordinates feed fetching, matching, synchronization, lifecycle and
    settlement for one ingestion cycle.
    """

    def __init__(
        self,
        db: Session,
        odds_client: Optional[OddsFeedClient] = None,
        results_client: Optional[ResultsFeedClient] = None,
        tz_name: Optional[str] = None,
    ):
        """
        Args:
            db: SQLAlchemy database session
            odds_client: Odds feed client (created lazily if omitted)
            results_client: Results feed client (created lazily if omitted)
            tz_name: Timezone for calendar-day matching
        """
        self.db = db
        self.tz_name = tz_name or settings.MATCH_TIMEZONE
        self.matcher = GameMatcher(db, self.tz_name)
        self.synchronizer = OddsSynchronizer()
        self.monitor = LifecycleMonitor(db)
        self.settlement = SettlementEngine(db)

        self._odds_client = odds_client
        self._results_client = results_client
        self._owned_clients = []

    @property
    def odds_client(self) -> OddsFeedClient:
        """Lazy load odds client."""
        if self._odds_client is None:
            self._odds_client = OddsFeedClient()
            self._owned_clients.append(self._odds_client)
        return self._odds_client

    @property
    def results_client(self) -> ResultsFeedClient:
        """Lazy load results client."""
        if self._results_client is None:
            self._results_client = ResultsFeedClient()
            self._owned_clients.append(self._results_client)
        return self._results_client

    async def close(self):
        """Close feed clients this orchestrator created."""
        for client in self._owned_clients:
            await client.close()
        self._owned_clients = []
        self._odds_client = None
        self._results_client = None

    async def trigger_ingestion_cycle(self, now: Optional[datetime] = None) -> Dict:
        """
        Run one ingestion cycle.

        Args:
            now: Cycle time (naive UTC), defaults to the current time

        Returns:
            Cycle summary with per-feed status, per-record counts, the IDs
            of games that finished, settlement summaries and duration_ms
        """
        global _last_cycle

        started = time.monotonic()
        now = now or utcnow()
        logger.info("Starting ingestion cycle")

        summary = {
            'started_at': now.isoformat(),
            'feeds': {},
            'odds': {'processed': 0, 'created': 0, 'updated': 0, 'unchanged': 0, 'ambiguous': 0, 'failed': 0},
            'results': {'processed': 0, 'matched': 0, 'unmatched': 0, 'ambiguous': 0, 'failed': 0},
            'finished_games': [],
            'forced_finished': [],
            'settlement': [],
        }

        try:
            odds_records = await self._fetch_odds(summary)
            results_records = await self._fetch_results(summary, now)
        finally:
            await self.close()

        for record in odds_records:
            self._apply_odds_record(record, now, summary['odds'])

        for record in results_records:
            game_id = self._apply_result_record(record, now, summary['results'])
            if game_id:
                summary['finished_games'].append(game_id)

        try:
            summary['forced_finished'] = self.monitor.force_finish_overdue(now)
        except Exception:
            self.db.rollback()
            logger.exception("Overdue game check failed")

        for game_id in summary['finished_games'] + summary['forced_finished']:
            try:
                summary['settlement'].append(self.settlement.trigger_settlement_for_game(game_id))
            except Exception:
                self.db.rollback()
                logger.exception(f"Settlement failed for game {game_id}; the sweep will retry")

        duration = time.monotonic() - started
        summary['duration_ms'] = int(duration * 1000)
        metrics.ingestion_cycle_duration_seconds.observe(duration)
        _last_cycle = summary

        logger.info(
            f"Ingestion cycle complete in {summary['duration_ms']}ms: "
            f"odds {summary['odds']}, results {summary['results']}, "
            f"{len(summary['finished_games'])} finished, "
            f"{len(summary['forced_finished'])} force-finished"
        )
        return summary

    # ========================================================================
    # Fetch
    # ========================================================================

    async def _fetch_odds(self, summary: Dict) -> List[OddsRecord]:
        try:
            records = await self.odds_client.fetch_odds()
        except FeedError as e:
            logger.error(f"Odds feed skipped this cycle: {e}")
            summary['feeds']['odds'] = {'ok': False, 'error': str(e)}
            return []
        summary['feeds']['odds'] = {'ok': True, 'records': len(records)}
        return records

    async def _fetch_results(self, summary: Dict, now: datetime) -> List[ResultRecord]:
        try:
            records = await self.results_client.fetch_recent_results(local_today(self.tz_name, now))
        except FeedError as e:
            logger.error(f"Results feed skipped this cycle: {e}")
            summary['feeds']['results'] = {'ok': False, 'error': str(e)}
            return []
        summary['feeds']['results'] = {'ok': True, 'records': len(records)}
        return records

    # ========================================================================
    # Apply
    # ========================================================================

    def _apply_odds_record(self, record: OddsRecord, now: datetime, counts: Dict) -> None:
        counts['processed'] += 1
        external = ExternalGameRef.from_odds_record(record, self.tz_name)

        try:
            resolution = self.matcher.resolve(external)
            changed = self.synchronizer.apply(resolution.game, record, now)
            self.db.commit()
        except MatchingAmbiguity as e:
            self.db.rollback()
            logger.warning(f"{e}; record skipped")
            self._count(counts, 'odds', 'ambiguous')
            return
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to apply odds record {record.id}")
            self._count(counts, 'odds', 'failed')
            return

        if resolution.created:
            self._count(counts, 'odds', 'created')
        elif changed:
            self._count(counts, 'odds', 'updated')
        else:
            self._count(counts, 'odds', 'unchanged')

    def _apply_result_record(self, record: ResultRecord, now: datetime, counts: Dict) -> Optional[str]:
        """Returns the game ID if the record moved its game into finished."""
        counts['processed'] += 1

        try:
            resolution = self.matcher.resolve(ExternalGameRef.from_result_record(record))
            if resolution.game is None:
                self._count(counts, 'results', 'unmatched')
                return None
            game_id = resolution.game.id
            newly_finished = self.monitor.apply_result(resolution.game, record, now)
            self.db.commit()
        except MatchingAmbiguity as e:
            self.db.rollback()
            logger.warning(f"{e}; record skipped")
            self._count(counts, 'results', 'ambiguous')
            return None
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to apply result record {record.game_id}")
            self._count(counts, 'results', 'failed')
            return None

        self._count(counts, 'results', 'matched')
        return game_id if newly_finished else None

    @staticmethod
    def _count(counts: Dict, feed: str, result: str) -> None:
        counts[result] += 1
        metrics.ingestion_records_total.labels(feed=feed, result=result).inc()
