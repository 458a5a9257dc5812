"""
Debt netting.

`plan_settlement` turns a zero-sum mapping of player balances into a short
list of transfers using greedy max-pair matching: the largest debtor pays
the largest creditor until one of them is square, and so on. This is not
guaranteed to hit the theoretical minimum (that problem is NP-hard) but it
never needs more than n - 1 transfers for n non-zero parties and never
overshoots either side. Ties are broken by player id so the same input
always yields the same plan.
"""

import heapq
from typing import Iterable, Mapping

from .errors import InvalidAmount, UnbalancedInput
from .models import SettlementSuggestion
from .money import Money


def plan_settlement(balances: Mapping[str, Money]) -> list[SettlementSuggestion]:
    residual = Money.total(balances.values())
    if residual:
        raise UnbalancedInput(residual)

    # Heaps keyed on (-magnitude, player_id): largest first, lowest id on ties.
    debtors = [(b.minor, pid) for pid, b in balances.items() if b.is_negative()]
    creditors = [(-b.minor, pid) for pid, b in balances.items() if b.is_positive()]
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    transfers: list[SettlementSuggestion] = []
    while debtors and creditors:
        debt, debtor = heapq.heappop(debtors)
        credit, creditor = heapq.heappop(creditors)
        amount = min(-debt, -credit)

        transfers.append(SettlementSuggestion(
            from_player_id=debtor,
            to_player_id=creditor,
            amount=Money(amount),
        ))

        if -debt > amount:
            heapq.heappush(debtors, (debt + amount, debtor))
        if -credit > amount:
            heapq.heappush(creditors, (credit + amount, creditor))

    return transfers


def apply_transfers(balances: Mapping[str, Money], transfers: Iterable[SettlementSuggestion]) -> dict[str, Money]:
    """Replay transfers against balances; a complete plan leaves every balance at zero."""
    result = dict(balances)
    for t in transfers:
        result[t.from_player_id] = result[t.from_player_id] + t.amount
        result[t.to_player_id] = result[t.to_player_id] - t.amount
    return result


def split_evenly(total: Money, player_ids: Iterable[str]) -> dict[str, Money]:
    """
    Split an amount among players without losing minor units.

    Every player gets total // n; the remainder is handed out one minor unit
    at a time in ascending player-id order. 7 among P1, P2, P3 gives
    {P1: 3, P2: 2, P3: 2}.
    """
    ordered = sorted(set(player_ids))
    if not ordered:
        raise InvalidAmount("Cannot split an amount among zero players")
    return dict(zip(ordered, total.split(len(ordered))))
