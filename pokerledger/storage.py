from typing import Optional, Protocol
from uuid import UUID

from .models import Game, GamePlayerEntry, GameStatus, Payment, Player


class LedgerStorage(Protocol):
    """Persistence the engine depends on. Each call is atomic from the engine's point of view."""

    def load_game(self, game_id: UUID) -> Optional[Game]: ...

    def save_game(self, game: Game) -> None: ...

    def delete_game(self, game_id: UUID) -> None: ...

    def load_games(self, group_id: str) -> list[Game]: ...

    def load_completed_games(self, group_id: str) -> list[Game]: ...

    def load_player_entries(self, game_id: UUID) -> list[GamePlayerEntry]: ...

    def save_game_player_entry(self, entry: GamePlayerEntry) -> None: ...

    def delete_game_player_entry(self, game_id: UUID, player_id: str) -> None: ...

    def load_payments(self, game_id: UUID) -> list[Payment]: ...

    def save_payment(self, payment: Payment) -> None: ...

    def find_payment_by_key(self, idempotency_key: str) -> Optional[Payment]: ...

    def load_group_members(self, group_id: str) -> list[Player]: ...

    def save_group_member(self, group_id: str, player: Player) -> None: ...

    def remove_group_member(self, group_id: str, player_id: str) -> None: ...


class InMemoryStorage:
    def __init__(self):
        self.games: dict[UUID, dict] = {}
        self.entries: dict[tuple[UUID, str], dict] = {}
        self.payments: dict[UUID, dict] = {}
        self.idempotency_index: dict[str, UUID] = {}
        self.group_members: dict[str, dict[str, dict]] = {}

    def load_game(self, game_id: UUID) -> Optional[Game]:
        data = self.games.get(game_id)
        return Game.model_validate(data) if data else None

    def save_game(self, game: Game) -> None:
        self.games[game.id] = game.model_dump()

    def delete_game(self, game_id: UUID) -> None:
        self.games.pop(game_id, None)
        for key in [k for k in self.entries if k[0] == game_id]:
            del self.entries[key]
        for payment_id in [pid for pid, p in self.payments.items() if p["game_id"] == game_id]:
            key = self.payments.pop(payment_id).get("idempotency_key")
            if key:
                self.idempotency_index.pop(key, None)

    def load_games(self, group_id: str) -> list[Game]:
        games = [Game.model_validate(g) for g in self.games.values() if g["group_id"] == group_id]
        games.sort(key=lambda g: g.started_at)
        return games

    def load_completed_games(self, group_id: str) -> list[Game]:
        return [g for g in self.load_games(group_id) if g.status == GameStatus.COMPLETED]

    def load_player_entries(self, game_id: UUID) -> list[GamePlayerEntry]:
        entries = [GamePlayerEntry.model_validate(e) for (gid, _), e in self.entries.items() if gid == game_id]
        entries.sort(key=lambda e: e.joined_at)
        return entries

    def save_game_player_entry(self, entry: GamePlayerEntry) -> None:
        self.entries[(entry.game_id, entry.player_id)] = entry.model_dump(exclude={"profit"})

    def delete_game_player_entry(self, game_id: UUID, player_id: str) -> None:
        self.entries.pop((game_id, player_id), None)

    def load_payments(self, game_id: UUID) -> list[Payment]:
        payments = [Payment.model_validate(p) for p in self.payments.values() if p["game_id"] == game_id]
        payments.sort(key=lambda p: p.created_at)
        return payments

    def save_payment(self, payment: Payment) -> None:
        self.payments[payment.id] = payment.model_dump()
        if payment.idempotency_key:
            self.idempotency_index[payment.idempotency_key] = payment.id

    def find_payment_by_key(self, idempotency_key: str) -> Optional[Payment]:
        payment_id = self.idempotency_index.get(idempotency_key)
        if payment_id:
            data = self.payments.get(payment_id)
            if data:
                return Payment.model_validate(data)
        return None

    def load_group_members(self, group_id: str) -> list[Player]:
        return [Player.model_validate(p) for p in self.group_members.get(group_id, {}).values()]

    def save_group_member(self, group_id: str, player: Player) -> None:
        self.group_members.setdefault(group_id, {})[player.id] = player.model_dump()

    def remove_group_member(self, group_id: str, player_id: str) -> None:
        self.group_members.get(group_id, {}).pop(player_id, None)
