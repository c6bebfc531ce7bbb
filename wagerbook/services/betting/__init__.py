"""
Wager placement, cancellation and settlement.

Usage:
    from wagerbook.services.betting import SettlementEngine, WagerService
"""
from wagerbook.services.betting.settlement_engine import SettlementEngine
from wagerbook.services.betting.wager_service import WagerService

__all__ = ["SettlementEngine", "WagerService"]
