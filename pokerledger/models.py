from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .money import Money, ZERO


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStatus(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"


class Player(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(frozen=True, from_attributes=True)


class Game(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    group_id: str
    stakes: str = ""
    default_buy_in: Money = ZERO
    bank_person_id: Optional[str] = None
    status: GameStatus = GameStatus.OPEN
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    def is_open(self) -> bool:
        return self.status == GameStatus.OPEN

    def is_completed(self) -> bool:
        return self.status == GameStatus.COMPLETED


class GamePlayerEntry(BaseModel):
    game_id: UUID
    player_id: str
    buy_in: Money = ZERO
    cash_out: Optional[Money] = None
    rebuy_count: int = 0
    joined_at: datetime = Field(default_factory=_utcnow)
    cashed_out_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def profit(self) -> Optional[Money]:
        if self.cash_out is None:
            return None
        return self.cash_out - self.buy_in

    def has_cashed_out(self) -> bool:
        return self.cash_out is not None


class Payment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    game_id: UUID
    payer_id: str
    payee_id: str
    amount: Money
    created_at: datetime = Field(default_factory=_utcnow)
    idempotency_key: Optional[str] = None
    reverses_payment_id: Optional[UUID] = None
    note: Optional[str] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)


class SettlementSuggestion(BaseModel):
    from_player_id: str
    to_player_id: str
    amount: Money

    model_config = ConfigDict(frozen=True)


class PlayerResult(BaseModel):
    player_id: str
    buy_in: Money
    cash_out: Optional[Money] = None
    profit: Optional[Money] = None
    rebuy_count: int = 0


class GameSummary(BaseModel):
    game_id: UUID
    status: GameStatus
    total_buy_in: Money
    total_cash_out: Money
    residual: Money
    is_balanced: bool
    biggest_winner: Optional[PlayerResult] = None
    biggest_loser: Optional[PlayerResult] = None
    results: list[PlayerResult]


class GroupLedgerSnapshot(BaseModel):
    group_id: str
    player_id: str
    lifetime_profit: Money = ZERO
    games_played: int = 0
    outstanding: Money = ZERO
    total_buy_in: Money = ZERO
    total_cash_out: Money = ZERO
    biggest_win: Money = ZERO
    biggest_loss: Money = ZERO
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    last_played_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateGameRequest(BaseModel):
    group_id: str
    stakes: str = Field(default="", description="Stakes label, e.g. '0.25/0.50'")
    default_buy_in: Money = Field(default=ZERO, description="Default buy-in in minor units")
    bank_person_id: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "group_id": "friday-night",
            "stakes": "0.25/0.50",
            "default_buy_in": 2000,
            "bank_person_id": "alice"
        }
    })


class BuyInRequest(BaseModel):
    player_id: str
    amount: Money = Field(..., description="Buy-in in minor units")


class CashOutRequest(BaseModel):
    player_id: str
    amount: Money = Field(..., description="Cash-out in minor units")


class RecordPaymentRequest(BaseModel):
    payer_id: str
    payee_id: str
    amount: Money = Field(..., description="Amount in minor units")
    idempotency_key: Optional[str] = Field(default=None, description="Deduplicates retried submissions")
    note: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "payer_id": "bob",
            "payee_id": "alice",
            "amount": 1500,
            "idempotency_key": "bob-alice-2024-05-03"
        }
    })


class PlanSettlementRequest(BaseModel):
    balances: dict[str, Money]


class AddMemberRequest(BaseModel):
    player_id: str
    name: str


class BalancesResponse(BaseModel):
    game_id: UUID
    balances: dict[str, Money]
    is_fully_settled: bool


class SettlementPlanResponse(BaseModel):
    transfers: list[SettlementSuggestion]
