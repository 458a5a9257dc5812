"""
Group-level roll-ups, recomputed from game entries and payments on every
call. There is no stored snapshot to drift out of date.
"""

from typing import Iterable, Sequence

from .game_ledger import GameLedger
from .models import GroupLedgerSnapshot, Payment, SettlementSuggestion
from .money import Money, ZERO
from .payments import PaymentTracker
from .planner import plan_settlement


def _completed_in_group(group_id: str, games: Iterable[GameLedger]) -> list[GameLedger]:
    ledgers = [g for g in games if g.game.group_id == group_id and g.game.is_completed()]
    ledgers.sort(key=lambda g: (g.game.started_at, str(g.game.id)))
    return ledgers


def _trackers(group_id: str, games: Iterable[GameLedger], payments: Sequence[Payment], tolerance: Money) -> list[PaymentTracker]:
    return [
        PaymentTracker.from_ledger(ledger, payments, tolerance)
        for ledger in _completed_in_group(group_id, games)
    ]


def group_outstanding_balances(
    group_id: str,
    games: Iterable[GameLedger],
    payments: Sequence[Payment],
    tolerance: Money = ZERO,
) -> dict[str, Money]:
    """Sum of every player's outstanding balance over the group's unsettled games."""
    totals: dict[str, Money] = {}
    for tracker in _trackers(group_id, games, payments, tolerance):
        if tracker.is_fully_settled():
            continue
        for pid, balance in tracker.outstanding_balances().items():
            totals[pid] = totals.get(pid, ZERO) + balance
    return dict(sorted(totals.items()))


def plan_group_settlement(
    group_id: str,
    games: Iterable[GameLedger],
    payments: Sequence[Payment],
    tolerance: Money = ZERO,
) -> list[SettlementSuggestion]:
    """Net debts across games so a player owing in one game and owed in another pays once."""
    balances = group_outstanding_balances(group_id, games, payments, tolerance)
    return plan_settlement({pid: b for pid, b in balances.items() if b})


def aggregate(
    group_id: str,
    games: Iterable[GameLedger],
    payments: Sequence[Payment],
    tolerance: Money = ZERO,
) -> list[GroupLedgerSnapshot]:
    games = list(games)
    snapshots: dict[str, GroupLedgerSnapshot] = {}

    for ledger in _completed_in_group(group_id, games):
        played_at = ledger.game.ended_at or ledger.game.started_at
        for entry in ledger.entries:
            snap = snapshots.get(entry.player_id)
            if snap is None:
                snap = GroupLedgerSnapshot(group_id=group_id, player_id=entry.player_id)
                snapshots[entry.player_id] = snap

            profit = entry.profit
            snap.games_played += 1
            snap.lifetime_profit = snap.lifetime_profit + profit
            snap.total_buy_in = snap.total_buy_in + entry.buy_in
            snap.total_cash_out = snap.total_cash_out + entry.cash_out
            if profit.is_positive():
                snap.wins += 1
                snap.biggest_win = max(snap.biggest_win, profit)
            elif profit.is_negative():
                snap.losses += 1
                snap.biggest_loss = min(snap.biggest_loss, profit)
            if snap.last_played_at is None or played_at > snap.last_played_at:
                snap.last_played_at = played_at

    outstanding = group_outstanding_balances(group_id, games, payments, tolerance)
    for pid, balance in outstanding.items():
        snap = snapshots.get(pid)
        if snap is None:
            if not balance:
                continue
            # Bank-person who never played but still holds or fronted money.
            snap = GroupLedgerSnapshot(group_id=group_id, player_id=pid)
            snapshots[pid] = snap
        snap.outstanding = balance

    for snap in snapshots.values():
        if snap.games_played:
            snap.win_rate = round(snap.wins / snap.games_played, 4)

    return sorted(snapshots.values(), key=lambda s: (-s.lifetime_profit.minor, s.player_id))
