"""
Feed reconciliation: matching, odds synchronization and game lifecycle.

Usage:
    from wagerbook.services.sync import IngestionOrchestrator

    orchestrator = IngestionOrchestrator(db)
    summary = await orchestrator.trigger_ingestion_cycle()
"""
from wagerbook.services.sync.orchestrator import IngestionOrchestrator, get_last_cycle

__all__ = ["IngestionOrchestrator", "get_last_cycle"]
