"""Wagerbook: feed ingestion and wager settlement engine."""

__version__ = "1.0.0"
