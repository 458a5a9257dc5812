"""
Poker Ledger & Settlement Engine

This package provides:
- Integer minor-unit money with exact arithmetic and remainder-safe splits
- Per-game buy-in / cash-out bookkeeping with a zero-sum close check
- Payment tracking against game results and settlement detection
- Greedy debt netting for one game or a whole group
- Group and player roll-ups recomputed from source records
"""

from .errors import LedgerError
from .game_ledger import GameLedger
from .models import (
    Game,
    GamePlayerEntry,
    GameStatus,
    GroupLedgerSnapshot,
    Payment,
    Player,
    SettlementSuggestion,
)
from .money import Money
from .payments import PaymentTracker
from .planner import plan_settlement, split_evenly
from .aggregator import aggregate
from .service import LedgerService

__all__ = [
    "Money",
    "Game",
    "GameStatus",
    "GamePlayerEntry",
    "Payment",
    "Player",
    "SettlementSuggestion",
    "GroupLedgerSnapshot",
    "GameLedger",
    "PaymentTracker",
    "plan_settlement",
    "split_evenly",
    "aggregate",
    "LedgerService",
    "LedgerError",
]
