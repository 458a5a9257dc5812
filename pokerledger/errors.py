from typing import Optional
from uuid import UUID

from .money import Money


class LedgerError(Exception):
    code = "LedgerError"


class InvalidAmount(LedgerError):
    code = "InvalidAmount"


class GameNotFound(LedgerError):
    code = "GameNotFound"


class GameNotOpen(LedgerError):
    code = "GameNotOpen"


class GameNotCompleted(LedgerError):
    code = "GameNotCompleted"


class PlayerNotInGame(LedgerError):
    code = "PlayerNotInGame"

    def __init__(self, player_id: str, game_id: Optional[UUID] = None):
        self.player_id = player_id
        self.game_id = game_id
        super().__init__(f"Player {player_id} has no entry in game {game_id}")


class EmptyGame(LedgerError):
    code = "EmptyGame"


class MissingCashOut(LedgerError):
    code = "MissingCashOut"

    def __init__(self, player_ids: list[str]):
        self.player_ids = player_ids
        super().__init__(f"Players without a recorded cash-out: {', '.join(player_ids)}")


class LedgerImbalance(LedgerError):
    """Profits of a game do not sum to zero; carries the residual for diagnostics."""

    code = "LedgerImbalance"

    def __init__(self, residual: Money, profits: dict[str, Money]):
        self.residual = residual
        self.profits = profits
        super().__init__(f"Profits sum to {residual} instead of 0.00")


class UnbalancedInput(LedgerError):
    code = "UnbalancedInput"

    def __init__(self, residual: Money):
        self.residual = residual
        super().__init__(f"Balances sum to {residual} instead of 0.00")


class InvalidPayment(LedgerError):
    code = "InvalidPayment"


class Overpayment(LedgerError):
    code = "Overpayment"

    def __init__(self, payer_id: str, owed: Money, amount: Money):
        self.payer_id = payer_id
        self.owed = owed
        self.amount = amount
        super().__init__(f"Payment of {amount} exceeds the {owed} still owed by {payer_id}")


class PaymentNotFound(LedgerError):
    code = "PaymentNotFound"


class PaymentAlreadyReversed(LedgerError):
    code = "PaymentAlreadyReversed"


class IdempotencyConflict(LedgerError):
    code = "IdempotencyConflict"


class OutstandingBalance(LedgerError):
    code = "OutstandingBalance"

    def __init__(self, player_id: str, balance: Money):
        self.player_id = player_id
        self.balance = balance
        super().__init__(f"Player {player_id} still has an outstanding balance of {balance}")


class PlayerInOpenGame(LedgerError):
    code = "PlayerInOpenGame"
