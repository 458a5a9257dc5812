from typing import Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import configure_logging, settings
from .errors import (
    GameNotFound,
    GameNotOpen,
    IdempotencyConflict,
    LedgerError,
    LedgerImbalance,
    OutstandingBalance,
    Overpayment,
    PaymentNotFound,
    PlayerInOpenGame,
    PlayerNotInGame,
    UnbalancedInput,
)
from .models import (
    AddMemberRequest,
    BalancesResponse,
    BuyInRequest,
    CashOutRequest,
    CreateGameRequest,
    Game,
    GamePlayerEntry,
    GameSummary,
    GroupLedgerSnapshot,
    Payment,
    PlanSettlementRequest,
    Player,
    RecordPaymentRequest,
    SettlementPlanResponse,
)
from .service import LedgerService

ERROR_STATUS = {
    GameNotFound: status.HTTP_404_NOT_FOUND,
    PaymentNotFound: status.HTTP_404_NOT_FOUND,
    PlayerNotInGame: status.HTTP_404_NOT_FOUND,
    GameNotOpen: status.HTTP_409_CONFLICT,
    IdempotencyConflict: status.HTTP_409_CONFLICT,
    OutstandingBalance: status.HTTP_409_CONFLICT,
    PlayerInOpenGame: status.HTTP_409_CONFLICT,
    LedgerImbalance: 422,
    Overpayment: 422,
    UnbalancedInput: 422,
}


def create_app(service: Optional[LedgerService] = None) -> FastAPI:
    configure_logging()
    ledger_service = service or LedgerService()

    app = FastAPI(
        title=settings.api_title,
        description="Buy-ins, cash-outs, payments and settlement plans for home poker games",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        body = {"error": exc.code, "detail": str(exc)}
        if isinstance(exc, (LedgerImbalance, UnbalancedInput)):
            body["residual"] = exc.residual.minor
        if isinstance(exc, LedgerImbalance):
            body["profits"] = {pid: p.minor for pid, p in exc.profits.items()}
        logger.debug(f"{request.method} {request.url.path} -> {status_code} {exc.code}")
        return JSONResponse(status_code=status_code, content=body)

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "poker-ledger"}

    @app.post("/games", response_model=Game, status_code=status.HTTP_201_CREATED, tags=["Games"])
    def create_game(request: CreateGameRequest) -> Game:
        return ledger_service.create_game(request)

    @app.get("/games/{game_id}", response_model=Game, tags=["Games"])
    def get_game(game_id: UUID) -> Game:
        return ledger_service.get_game(game_id)

    @app.delete("/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Games"])
    def delete_game(game_id: UUID) -> None:
        ledger_service.delete_game(game_id)

    @app.post("/games/{game_id}/buy-ins", response_model=GamePlayerEntry, tags=["Games"])
    def record_buy_in(game_id: UUID, request: BuyInRequest) -> GamePlayerEntry:
        return ledger_service.record_buy_in(game_id, request.player_id, request.amount)

    @app.post("/games/{game_id}/cash-outs", response_model=GamePlayerEntry, tags=["Games"])
    def record_cash_out(game_id: UUID, request: CashOutRequest) -> GamePlayerEntry:
        return ledger_service.record_cash_out(game_id, request.player_id, request.amount)

    @app.delete("/games/{game_id}/players/{player_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Games"])
    def remove_player(game_id: UUID, player_id: str) -> None:
        ledger_service.remove_player(game_id, player_id)

    @app.post("/games/{game_id}/close", response_model=Game, tags=["Games"])
    def close_game(game_id: UUID) -> Game:
        return ledger_service.close_game(game_id)

    @app.get("/games/{game_id}/summary", response_model=GameSummary, tags=["Games"])
    def game_summary(game_id: UUID) -> GameSummary:
        return ledger_service.game_summary(game_id)

    @app.post("/games/{game_id}/payments", response_model=Payment, status_code=status.HTTP_201_CREATED, tags=["Payments"])
    def record_payment(game_id: UUID, request: RecordPaymentRequest) -> Payment:
        return ledger_service.record_payment(game_id, request)

    @app.post("/games/{game_id}/payments/{payment_id}/reverse", response_model=Payment, tags=["Payments"])
    def reverse_payment(game_id: UUID, payment_id: UUID) -> Payment:
        return ledger_service.reverse_payment(game_id, payment_id)

    @app.get("/games/{game_id}/balances", response_model=BalancesResponse, tags=["Payments"])
    def outstanding_balances(game_id: UUID) -> BalancesResponse:
        tracker = ledger_service.get_tracker(game_id)
        return BalancesResponse(
            game_id=game_id,
            balances=tracker.outstanding_balances(),
            is_fully_settled=tracker.is_fully_settled(),
        )

    @app.get("/games/{game_id}/settlement", response_model=SettlementPlanResponse, tags=["Settlement"])
    def plan_game_settlement(game_id: UUID) -> SettlementPlanResponse:
        return SettlementPlanResponse(transfers=ledger_service.plan_game_settlement(game_id))

    @app.post("/settlement/plan", response_model=SettlementPlanResponse, tags=["Settlement"])
    def plan_settlement(request: PlanSettlementRequest) -> SettlementPlanResponse:
        return SettlementPlanResponse(transfers=ledger_service.plan_settlement(request.balances))

    @app.get("/groups/{group_id}/ledger", response_model=list[GroupLedgerSnapshot], tags=["Groups"])
    def group_ledger(group_id: str) -> list[GroupLedgerSnapshot]:
        return ledger_service.aggregate(group_id)

    @app.get("/groups/{group_id}/players/{player_id}/ledger", response_model=GroupLedgerSnapshot, tags=["Groups"])
    def player_ledger(group_id: str, player_id: str) -> GroupLedgerSnapshot:
        snapshot = ledger_service.group_snapshot(group_id, player_id)
        if snapshot is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Player {player_id} has no completed games in group {group_id}",
            )
        return snapshot

    @app.get("/groups/{group_id}/settlement", response_model=SettlementPlanResponse, tags=["Groups"])
    def plan_group_settlement(group_id: str) -> SettlementPlanResponse:
        return SettlementPlanResponse(transfers=ledger_service.plan_group_settlement(group_id))

    @app.post("/groups/{group_id}/members", response_model=Player, status_code=status.HTTP_201_CREATED, tags=["Groups"])
    def add_member(group_id: str, request: AddMemberRequest) -> Player:
        return ledger_service.add_group_member(group_id, Player(id=request.player_id, name=request.name))

    @app.post("/groups/{group_id}/members/{player_id}/leave", status_code=status.HTTP_204_NO_CONTENT, tags=["Groups"])
    def leave_group(group_id: str, player_id: str) -> None:
        ledger_service.leave_group(group_id, player_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
