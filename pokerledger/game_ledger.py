"""
Per-game bookkeeping: buy-ins, rebuys, cash-outs and the zero-sum check
that gates closing a game.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from .errors import (
    EmptyGame,
    GameNotOpen,
    InvalidAmount,
    LedgerImbalance,
    MissingCashOut,
    PlayerNotInGame,
)
from .models import Game, GamePlayerEntry, GameStatus, GameSummary, PlayerResult
from .money import Money


class GameLedger:
    def __init__(self, game: Game, entries: Optional[Iterable[GamePlayerEntry]] = None):
        self.game = game
        self._entries: dict[str, GamePlayerEntry] = {}
        for entry in entries or ():
            self._entries[entry.player_id] = entry

    @property
    def entries(self) -> list[GamePlayerEntry]:
        return list(self._entries.values())

    def entry(self, player_id: str) -> GamePlayerEntry:
        entry = self._entries.get(player_id)
        if entry is None:
            raise PlayerNotInGame(player_id, self.game.id)
        return entry

    def has_player(self, player_id: str) -> bool:
        return player_id in self._entries

    def record_buy_in(self, player_id: str, amount: Money, now: Optional[datetime] = None) -> GamePlayerEntry:
        """Add a buy-in; any buy-in after the first one counts as a rebuy."""
        if not amount.is_positive():
            raise InvalidAmount(f"Buy-in must be > 0, got {amount}")
        self._ensure_open()

        entry = self._entries.get(player_id)
        if entry is None:
            entry = GamePlayerEntry(
                game_id=self.game.id,
                player_id=player_id,
                buy_in=amount,
                joined_at=now or datetime.now(timezone.utc),
            )
            self._entries[player_id] = entry
        else:
            entry.buy_in = entry.buy_in + amount
            entry.rebuy_count += 1
        return entry

    def record_cash_out(self, player_id: str, amount: Money, now: Optional[datetime] = None) -> GamePlayerEntry:
        """Set (or correct) a player's cash-out while the game is still open."""
        if amount.is_negative():
            raise InvalidAmount(f"Cash-out cannot be negative, got {amount}")
        self._ensure_open()

        entry = self.entry(player_id)
        entry.cash_out = amount
        entry.cashed_out_at = now or datetime.now(timezone.utc)
        return entry

    def remove_player(self, player_id: str) -> GamePlayerEntry:
        self._ensure_open()
        entry = self.entry(player_id)
        del self._entries[player_id]
        return entry

    def close_game(self, now: Optional[datetime] = None) -> Game:
        """
        Transition the game from open to completed.

        Every player must have cashed out and the profits must sum to exactly
        zero. An imbalance is reported, never rounded away, and leaves the
        game open so the entries can be corrected.
        """
        self._ensure_open()
        if not self._entries:
            raise EmptyGame(f"Game {self.game.id} has no players")

        profits = self.profits()
        residual = Money.total(profits.values())
        if residual:
            raise LedgerImbalance(residual, profits)

        ended_at = now or datetime.now(timezone.utc)
        self.game.status = GameStatus.COMPLETED
        self.game.ended_at = ended_at
        self.game.duration_seconds = max(0, round((ended_at - self.game.started_at).total_seconds()))
        return self.game

    def profit_of(self, player_id: str) -> Money:
        entry = self.entry(player_id)
        if entry.profit is None:
            raise MissingCashOut([player_id])
        return entry.profit

    def profits(self) -> dict[str, Money]:
        missing = sorted(pid for pid, e in self._entries.items() if not e.has_cashed_out())
        if missing:
            raise MissingCashOut(missing)
        return {pid: e.profit for pid, e in self._entries.items()}

    def implied_bank_profit(self) -> Money:
        """What the bank-person's profit has to be for the pot to close."""
        bank_id = self.game.bank_person_id
        return -Money.total(
            e.profit for pid, e in self._entries.items()
            if pid != bank_id and e.profit is not None
        )

    def summary(self) -> GameSummary:
        results = [
            PlayerResult(
                player_id=e.player_id,
                buy_in=e.buy_in,
                cash_out=e.cash_out,
                profit=e.profit,
                rebuy_count=e.rebuy_count,
            )
            for e in self._entries.values()
        ]
        total_buy_in = Money.total(r.buy_in for r in results)
        total_cash_out = Money.total(r.cash_out for r in results if r.cash_out is not None)
        residual = total_cash_out - total_buy_in
        all_cashed_out = all(r.cash_out is not None for r in results)

        settled = [r for r in results if r.profit is not None]
        winners = sorted((r for r in settled if r.profit.is_positive()), key=lambda r: (-r.profit.minor, r.player_id))
        losers = sorted((r for r in settled if r.profit.is_negative()), key=lambda r: (r.profit.minor, r.player_id))

        return GameSummary(
            game_id=self.game.id,
            status=self.game.status,
            total_buy_in=total_buy_in,
            total_cash_out=total_cash_out,
            residual=residual,
            is_balanced=bool(results) and all_cashed_out and residual.is_zero(),
            biggest_winner=winners[0] if winners else None,
            biggest_loser=losers[0] if losers else None,
            results=results,
        )

    def _ensure_open(self) -> None:
        if not self.game.is_open():
            raise GameNotOpen(f"Game {self.game.id} is {self.game.status.value}")
