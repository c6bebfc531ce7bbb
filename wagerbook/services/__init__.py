"""
Services module for engine business logic.

This module organizes services into:
- feeds: External odds and results feed clients
- sync: Matching, odds synchronization, game lifecycle and the ingestion cycle
- betting: Odds math, wager placement and settlement
"""
