from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional
from uuid import UUID

from .errors import (
    GameNotCompleted,
    InvalidAmount,
    InvalidPayment,
    Overpayment,
    PaymentAlreadyReversed,
    PaymentNotFound,
    PlayerNotInGame,
)
from .game_ledger import GameLedger
from .models import Game, Payment
from .money import Money, ZERO


class PaymentTracker:
    """
    Tracks real-world payments against the profits of one completed game.

    A player's outstanding balance is profit + paid out - received:
    negative means the player still owes, positive means the player is
    still owed. Nothing is cached; balances are recomputed from the payment
    log on every call.
    """

    def __init__(
        self,
        game: Game,
        profits: Mapping[str, Money],
        payments: Iterable[Payment] = (),
        tolerance: Money = ZERO,
    ):
        self.game = game
        self.profits = dict(profits)
        self.tolerance = tolerance
        self._payments: list[Payment] = [p for p in payments if p.game_id == game.id]

    @classmethod
    def from_ledger(cls, ledger: GameLedger, payments: Iterable[Payment] = (), tolerance: Money = ZERO) -> "PaymentTracker":
        if not ledger.game.is_completed():
            raise GameNotCompleted(f"Game {ledger.game.id} is still open; payments start once it is completed")
        return cls(ledger.game, ledger.profits(), payments, tolerance)

    @property
    def payments(self) -> list[Payment]:
        return list(self._payments)

    @property
    def participants(self) -> set[str]:
        ids = set(self.profits)
        if self.game.bank_person_id:
            ids.add(self.game.bank_person_id)
        return ids

    def outstanding_balances(self) -> dict[str, Money]:
        balances = {pid: self.profits.get(pid, ZERO) for pid in self.participants}
        for payment in self._payments:
            balances[payment.payer_id] = balances.get(payment.payer_id, ZERO) + payment.amount
            balances[payment.payee_id] = balances.get(payment.payee_id, ZERO) - payment.amount
        return dict(sorted(balances.items()))

    def balance_of(self, player_id: str) -> Money:
        if player_id not in self.participants:
            raise PlayerNotInGame(player_id, self.game.id)
        return self.outstanding_balances()[player_id]

    def owed_by(self, player_id: str) -> Money:
        balance = self.balance_of(player_id)
        return -balance if balance.is_negative() else ZERO

    def is_fully_settled(self) -> bool:
        return all(b.is_zero() for b in self.outstanding_balances().values())

    def record_payment(
        self,
        payer_id: str,
        payee_id: str,
        amount: Money,
        idempotency_key: Optional[str] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Payment:
        if not amount.is_positive():
            raise InvalidAmount(f"Payment must be > 0, got {amount}")
        if payer_id == payee_id:
            raise InvalidPayment("Payer and payee must be different players")
        for player_id in (payer_id, payee_id):
            if player_id not in self.participants:
                raise PlayerNotInGame(player_id, self.game.id)

        # Cumulative: the payer's balance may end past zero by at most the tolerance.
        # The bank-person fronts winnings, capped by what the payee is still owed.
        if payer_id == self.game.bank_person_id:
            cap = max(self.balance_of(payee_id), ZERO)
            if amount > cap + self.tolerance:
                raise Overpayment(payer_id, cap, amount)
        elif self.balance_of(payer_id) + amount > self.tolerance:
            raise Overpayment(payer_id, self.owed_by(payer_id), amount)

        payment = Payment(
            game_id=self.game.id,
            payer_id=payer_id,
            payee_id=payee_id,
            amount=amount,
            idempotency_key=idempotency_key,
            note=note,
            created_at=now or datetime.now(timezone.utc),
        )
        self._payments.append(payment)
        return payment

    def reverse_payment(self, payment_id: UUID, now: Optional[datetime] = None) -> Payment:
        """Append an offsetting payment that cancels an earlier one."""
        original = next((p for p in self._payments if p.id == payment_id), None)
        if original is None:
            raise PaymentNotFound(f"Payment {payment_id} not found in game {self.game.id}")
        if original.reverses_payment_id is not None:
            raise InvalidPayment(f"Payment {payment_id} is itself a reversal")
        if any(p.reverses_payment_id == payment_id for p in self._payments):
            raise PaymentAlreadyReversed(f"Payment {payment_id} has already been reversed")

        reversal = Payment(
            game_id=self.game.id,
            payer_id=original.payee_id,
            payee_id=original.payer_id,
            amount=original.amount,
            reverses_payment_id=original.id,
            idempotency_key=f"{original.idempotency_key}:reversal" if original.idempotency_key else None,
            note=f"Reversal of {original.id}",
            created_at=now or datetime.now(timezone.utc),
        )
        self._payments.append(reversal)
        return reversal
