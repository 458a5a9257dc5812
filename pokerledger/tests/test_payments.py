"""
Unit Tests for PaymentTracker

Tests cover:
1. Outstanding balance calculation
2. Partial payments and settlement detection
3. Overpayment rejection and tolerance
4. Bank-person fronting and relaying
5. Payment reversal
"""

import pytest
from uuid import uuid4

from pokerledger.errors import (
    GameNotCompleted,
    InvalidAmount,
    InvalidPayment,
    Overpayment,
    PaymentAlreadyReversed,
    PaymentNotFound,
    PlayerNotInGame,
)
from pokerledger.game_ledger import GameLedger
from pokerledger.models import Game, Payment
from pokerledger.money import Money
from pokerledger.payments import PaymentTracker


def completed_ledger(bank_person_id: str = "alice") -> GameLedger:
    ledger = GameLedger(Game(group_id="friday", bank_person_id=bank_person_id))
    ledger.record_buy_in("alice", Money(2000))
    ledger.record_buy_in("bob", Money(2000))
    ledger.record_buy_in("carol", Money(2000))
    ledger.record_cash_out("alice", Money(3500))
    ledger.record_cash_out("bob", Money(1200))
    ledger.record_cash_out("carol", Money(1300))
    ledger.close_game()
    return ledger


class TestOutstandingBalances:
    """Tests for balances derived from profits and payments."""

    def test_balances_start_at_profit(self):
        """Test that with no payments each balance equals the profit."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        assert tracker.outstanding_balances() == {
            "alice": Money(1500),
            "bob": Money(-800),
            "carol": Money(-700),
        }
        assert not tracker.is_fully_settled()

    def test_open_game_has_no_tracker(self):
        """Test that payments only start once the game is completed."""
        ledger = GameLedger(Game(group_id="friday"))
        ledger.record_buy_in("bob", Money(2000))

        with pytest.raises(GameNotCompleted):
            PaymentTracker.from_ledger(ledger)

    def test_other_games_payments_ignored(self):
        """Test that payments recorded against another game do not count."""
        ledger = completed_ledger()
        stray = Payment(game_id=uuid4(), payer_id="bob", payee_id="alice", amount=Money(800))

        tracker = PaymentTracker.from_ledger(ledger, [stray])

        assert tracker.balance_of("bob") == Money(-800)


class TestSettlement:
    """Tests for partial payments and full settlement."""

    def test_partial_then_full_settlement(self):
        """Test that settlement flips only when every debtor has paid in full."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        tracker.record_payment("bob", "alice", Money(800))
        tracker.record_payment("carol", "alice", Money(300))

        assert tracker.balance_of("bob") == Money(0)
        assert tracker.balance_of("carol") == Money(-400)
        assert tracker.balance_of("alice") == Money(400)
        assert not tracker.is_fully_settled()

        tracker.record_payment("carol", "alice", Money(400))

        assert tracker.is_fully_settled()
        assert len(tracker.payments) == 3

    def test_overpayment_rejected_and_balances_unchanged(self):
        """Test that paying more than owed is refused outright."""
        tracker = PaymentTracker.from_ledger(completed_ledger())
        before = tracker.outstanding_balances()

        with pytest.raises(Overpayment) as exc_info:
            tracker.record_payment("bob", "alice", Money(801))

        assert exc_info.value.owed == Money(800)
        assert exc_info.value.amount == Money(801)
        assert tracker.outstanding_balances() == before
        assert tracker.payments == []

    def test_duplicate_submission_rejected(self):
        """Test that a second full payment is caught as an overpayment."""
        tracker = PaymentTracker.from_ledger(completed_ledger())
        tracker.record_payment("bob", "alice", Money(800))

        with pytest.raises(Overpayment):
            tracker.record_payment("bob", "alice", Money(800))

    def test_tolerance_allows_small_overpayment(self):
        """Test that the configured tolerance absorbs a small overpayment."""
        tracker = PaymentTracker.from_ledger(completed_ledger(), tolerance=Money(50))

        tracker.record_payment("bob", "alice", Money(850))

        assert tracker.balance_of("bob") == Money(50)
        with pytest.raises(Overpayment):
            tracker.record_payment("carol", "alice", Money(751))

    def test_tolerance_is_cumulative(self):
        """Test that small repeated overpayments cannot add up past the tolerance."""
        tracker = PaymentTracker.from_ledger(completed_ledger(), tolerance=Money(50))
        tracker.record_payment("bob", "alice", Money(820))
        tracker.record_payment("bob", "alice", Money(30))

        for _ in range(3):
            with pytest.raises(Overpayment):
                tracker.record_payment("bob", "alice", Money(50))
        with pytest.raises(Overpayment):
            tracker.record_payment("bob", "alice", Money(1))

        assert tracker.balance_of("bob") == Money(50)
        assert len(tracker.payments) == 2

    def test_bank_person_duplicate_payment_rejected(self):
        """Test that the bank-person cannot pay a winner twice."""
        tracker = PaymentTracker.from_ledger(completed_ledger(bank_person_id="dan"))
        tracker.record_payment("dan", "alice", Money(1500))

        with pytest.raises(Overpayment) as exc_info:
            tracker.record_payment("dan", "alice", Money(1500))

        assert exc_info.value.owed == Money(0)
        assert tracker.balance_of("alice") == Money(0)
        assert tracker.balance_of("dan") == Money(1500)

    def test_bank_person_cannot_pay_losers(self):
        """Test that a playing bank-person cannot send money to a player who is owed nothing."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        with pytest.raises(Overpayment):
            tracker.record_payment("alice", "bob", Money(1500))

        assert tracker.payments == []

    def test_bank_person_fronts_and_collects(self):
        """Test that a non-playing bank-person can pay winners before collecting."""
        tracker = PaymentTracker.from_ledger(completed_ledger(bank_person_id="dan"))

        tracker.record_payment("dan", "alice", Money(1500))
        assert tracker.balance_of("dan") == Money(1500)
        assert tracker.balance_of("alice") == Money(0)

        tracker.record_payment("bob", "dan", Money(800))
        tracker.record_payment("carol", "dan", Money(700))

        assert tracker.is_fully_settled()

    def test_bank_person_relays(self):
        """Test that money held by the bank-person shows as owed until relayed."""
        tracker = PaymentTracker.from_ledger(completed_ledger(bank_person_id="dan"))

        tracker.record_payment("bob", "dan", Money(800))
        assert tracker.balance_of("dan") == Money(-800)

        tracker.record_payment("dan", "alice", Money(800))
        assert tracker.balance_of("dan") == Money(0)
        assert tracker.balance_of("alice") == Money(700)


class TestPaymentValidation:
    """Tests for payment input validation."""

    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_amount(self, amount):
        """Test that payments must be positive."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        with pytest.raises(InvalidAmount):
            tracker.record_payment("bob", "alice", Money(amount))

    def test_self_payment(self):
        """Test that a player cannot pay itself."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        with pytest.raises(InvalidPayment):
            tracker.record_payment("bob", "bob", Money(100))

    def test_unknown_player(self):
        """Test that both sides must be part of the game."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        with pytest.raises(PlayerNotInGame):
            tracker.record_payment("bob", "zoe", Money(100))


class TestReversal:
    """Tests for reversing payments."""

    def test_reverse_restores_balances(self):
        """Test that an offsetting payment cancels the original."""
        tracker = PaymentTracker.from_ledger(completed_ledger())
        payment = tracker.record_payment("bob", "alice", Money(800))

        reversal = tracker.reverse_payment(payment.id)

        assert reversal.payer_id == "alice"
        assert reversal.payee_id == "bob"
        assert reversal.amount == Money(800)
        assert reversal.reverses_payment_id == payment.id
        assert tracker.balance_of("bob") == Money(-800)
        assert tracker.balance_of("alice") == Money(1500)

    def test_cannot_reverse_twice(self):
        """Test that a payment can only be reversed once."""
        tracker = PaymentTracker.from_ledger(completed_ledger())
        payment = tracker.record_payment("bob", "alice", Money(800))
        reversal = tracker.reverse_payment(payment.id)

        with pytest.raises(PaymentAlreadyReversed):
            tracker.reverse_payment(payment.id)
        with pytest.raises(InvalidPayment):
            tracker.reverse_payment(reversal.id)

    def test_reverse_unknown_payment(self):
        """Test that reversing an unknown payment fails."""
        tracker = PaymentTracker.from_ledger(completed_ledger())

        with pytest.raises(PaymentNotFound):
            tracker.reverse_payment(uuid4())
