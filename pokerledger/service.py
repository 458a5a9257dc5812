from datetime import datetime
from typing import Mapping, Optional
from uuid import UUID

from loguru import logger

from .aggregator import aggregate, group_outstanding_balances, plan_group_settlement
from .config import settings
from .errors import (
    GameNotFound,
    GameNotOpen,
    IdempotencyConflict,
    InvalidAmount,
    LedgerImbalance,
    OutstandingBalance,
    Overpayment,
    PlayerInOpenGame,
)
from .game_ledger import GameLedger
from .models import (
    CreateGameRequest,
    Game,
    GamePlayerEntry,
    GameSummary,
    GroupLedgerSnapshot,
    Payment,
    Player,
    RecordPaymentRequest,
    SettlementSuggestion,
)
from .money import Money
from .payments import PaymentTracker
from .planner import plan_settlement
from .storage import InMemoryStorage, LedgerStorage


class LedgerService:
    def __init__(self, storage: Optional[LedgerStorage] = None, tolerance: Optional[Money] = None):
        self.storage = storage or InMemoryStorage()
        self.tolerance = tolerance if tolerance is not None else Money(settings.overpayment_tolerance)

    # Games

    def create_game(self, request: CreateGameRequest, now: Optional[datetime] = None) -> Game:
        if request.default_buy_in.is_negative():
            raise InvalidAmount(f"Default buy-in cannot be negative, got {request.default_buy_in}")

        game = Game(
            group_id=request.group_id,
            stakes=request.stakes,
            default_buy_in=request.default_buy_in,
            bank_person_id=request.bank_person_id,
        )
        if now is not None:
            game.started_at = now
        self.storage.save_game(game)
        logger.info(f"Created game {game.id} in group {game.group_id} ({game.stakes or 'no stakes'})")
        return game

    def get_game(self, game_id: UUID) -> Game:
        game = self.storage.load_game(game_id)
        if game is None:
            raise GameNotFound(f"Game {game_id} not found")
        return game

    def delete_game(self, game_id: UUID) -> None:
        game = self.get_game(game_id)
        if not game.is_open():
            raise GameNotOpen(f"Cannot delete game {game_id}: it is already {game.status.value}")
        self.storage.delete_game(game_id)
        logger.info(f"Deleted open game {game_id}")

    def get_ledger(self, game_id: UUID) -> GameLedger:
        game = self.get_game(game_id)
        return GameLedger(game, self.storage.load_player_entries(game_id))

    def record_buy_in(self, game_id: UUID, player_id: str, amount: Money) -> GamePlayerEntry:
        ledger = self.get_ledger(game_id)
        entry = ledger.record_buy_in(player_id, amount)
        self.storage.save_game_player_entry(entry)
        logger.info(f"Game {game_id}: {player_id} bought in for {amount} (total {entry.buy_in})")
        return entry

    def record_cash_out(self, game_id: UUID, player_id: str, amount: Money) -> GamePlayerEntry:
        ledger = self.get_ledger(game_id)
        entry = ledger.record_cash_out(player_id, amount)
        self.storage.save_game_player_entry(entry)
        logger.info(f"Game {game_id}: {player_id} cashed out {amount} (profit {entry.profit})")
        return entry

    def remove_player(self, game_id: UUID, player_id: str) -> None:
        ledger = self.get_ledger(game_id)
        ledger.remove_player(player_id)
        self.storage.delete_game_player_entry(game_id, player_id)
        logger.info(f"Game {game_id}: removed {player_id}")

    def close_game(self, game_id: UUID, now: Optional[datetime] = None) -> Game:
        ledger = self.get_ledger(game_id)
        try:
            game = ledger.close_game(now)
        except LedgerImbalance as e:
            logger.warning(
                f"Game {game_id} cannot close: residual {e.residual}, "
                f"implied bank profit {ledger.implied_bank_profit()}"
            )
            raise
        self.storage.save_game(game)
        logger.info(f"Closed game {game_id} with {len(ledger.entries)} players")
        return game

    def profit_of(self, game_id: UUID, player_id: str) -> Money:
        return self.get_ledger(game_id).profit_of(player_id)

    def game_summary(self, game_id: UUID) -> GameSummary:
        return self.get_ledger(game_id).summary()

    # Payments

    def get_tracker(self, game_id: UUID) -> PaymentTracker:
        ledger = self.get_ledger(game_id)
        return PaymentTracker.from_ledger(ledger, self.storage.load_payments(game_id), self.tolerance)

    def record_payment(self, game_id: UUID, request: RecordPaymentRequest) -> Payment:
        if request.idempotency_key:
            existing = self._check_idempotency(game_id, request)
            if existing:
                logger.info(f"Payment {existing.id} already recorded for key {request.idempotency_key}")
                return existing

        tracker = self.get_tracker(game_id)
        try:
            payment = tracker.record_payment(
                request.payer_id,
                request.payee_id,
                request.amount,
                idempotency_key=request.idempotency_key,
                note=request.note,
            )
        except Overpayment as e:
            logger.warning(f"Game {game_id}: rejected overpayment of {e.amount} by {e.payer_id} (owes {e.owed})")
            raise

        self.storage.save_payment(payment)
        logger.info(f"Game {game_id}: {payment.payer_id} paid {payment.payee_id} {payment.amount}")
        if tracker.is_fully_settled():
            logger.info(f"Game {game_id} is fully settled")
        return payment

    def reverse_payment(self, game_id: UUID, payment_id: UUID) -> Payment:
        tracker = self.get_tracker(game_id)
        reversal = tracker.reverse_payment(payment_id)
        self.storage.save_payment(reversal)
        logger.info(f"Game {game_id}: reversed payment {payment_id} with {reversal.id}")
        return reversal

    def outstanding_balances(self, game_id: UUID) -> dict[str, Money]:
        return self.get_tracker(game_id).outstanding_balances()

    def is_fully_settled(self, game_id: UUID) -> bool:
        return self.get_tracker(game_id).is_fully_settled()

    def plan_game_settlement(self, game_id: UUID) -> list[SettlementSuggestion]:
        balances = self.outstanding_balances(game_id)
        return plan_settlement({pid: b for pid, b in balances.items() if b})

    def plan_settlement(self, balances: Mapping[str, Money]) -> list[SettlementSuggestion]:
        return plan_settlement(balances)

    # Groups

    def _group_ledgers(self, group_id: str) -> list[GameLedger]:
        return [
            GameLedger(game, self.storage.load_player_entries(game.id))
            for game in self.storage.load_completed_games(group_id)
        ]

    def _group_payments(self, ledgers: list[GameLedger]) -> list[Payment]:
        payments: list[Payment] = []
        for ledger in ledgers:
            payments.extend(self.storage.load_payments(ledger.game.id))
        return payments

    def aggregate(self, group_id: str) -> list[GroupLedgerSnapshot]:
        ledgers = self._group_ledgers(group_id)
        return aggregate(group_id, ledgers, self._group_payments(ledgers), self.tolerance)

    def group_snapshot(self, group_id: str, player_id: str) -> Optional[GroupLedgerSnapshot]:
        return next((s for s in self.aggregate(group_id) if s.player_id == player_id), None)

    def group_outstanding_balances(self, group_id: str) -> dict[str, Money]:
        ledgers = self._group_ledgers(group_id)
        return group_outstanding_balances(group_id, ledgers, self._group_payments(ledgers), self.tolerance)

    def plan_group_settlement(self, group_id: str) -> list[SettlementSuggestion]:
        ledgers = self._group_ledgers(group_id)
        return plan_group_settlement(group_id, ledgers, self._group_payments(ledgers), self.tolerance)

    def add_group_member(self, group_id: str, player: Player) -> Player:
        self.storage.save_group_member(group_id, player)
        return player

    def group_members(self, group_id: str) -> list[Player]:
        return self.storage.load_group_members(group_id)

    def leave_group(self, group_id: str, player_id: str) -> None:
        """Remove a member unless that would orphan a game seat or an unpaid balance."""
        for game in self.storage.load_games(group_id):
            if game.is_open():
                entries = self.storage.load_player_entries(game.id)
                if any(e.player_id == player_id for e in entries):
                    raise PlayerInOpenGame(f"Player {player_id} is still in open game {game.id}")

        for ledger in self._group_ledgers(group_id):
            tracker = PaymentTracker.from_ledger(ledger, self.storage.load_payments(ledger.game.id), self.tolerance)
            if player_id not in tracker.participants:
                continue
            balance = tracker.balance_of(player_id)
            if balance:
                logger.warning(f"Player {player_id} cannot leave group {group_id}: {balance} outstanding in game {ledger.game.id}")
                raise OutstandingBalance(player_id, balance)

        self.storage.remove_group_member(group_id, player_id)
        logger.info(f"Player {player_id} left group {group_id}")

    def _check_idempotency(self, game_id: UUID, request: RecordPaymentRequest) -> Optional[Payment]:
        existing = self.storage.find_payment_by_key(request.idempotency_key)
        if existing is None:
            return None
        same = (
            existing.game_id == game_id
            and existing.payer_id == request.payer_id
            and existing.payee_id == request.payee_id
            and existing.amount == request.amount
        )
        if not same:
            raise IdempotencyConflict(
                f"Idempotency key {request.idempotency_key} was already used for a different payment"
            )
        return existing
