"""HTTP API for trading, portfolios and asset data."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from psycopg import Connection
from psycopg.rows import TupleRow
from psycopg_pool import ConnectionPool

from onestonks.auth_client import Authenticator, SupabaseAuthClient
from onestonks.config import settings_from_env, validate_settings
from onestonks.domain.models import Asset, TradeType, User
from onestonks.errors import AssetNotFound, AuthenticationError, TradeError, UserNotFound
from onestonks.holdings import summarize_portfolio
from onestonks.infrastructure.repositories import PostgresRepository, Repository
from onestonks.schemas import (
    AssetOut,
    PortfolioOut,
    PositionOut,
    PricePointOut,
    ProfileIn,
    ProfileOut,
    TradeIn,
    TradeOut,
    TradeResponse,
    TransactionOut,
)
from onestonks.settlement import TradeSettler
from onestonks.utils import create_logger, format_coins, log_settings

router = APIRouter()


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_logger(request: Request) -> logging.Logger:
    return request.app.state.logger


def get_bearer_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    if not authorization:
        raise AuthenticationError("missing token")
    scheme, _, token = authorization.partition(" ")
    if scheme.strip().lower() != "bearer" or not token.strip():
        raise AuthenticationError("missing token")
    return token.strip()


def get_current_user_id(
    request: Request, token: str = Depends(get_bearer_token)
) -> UUID:
    authenticator: Authenticator = request.app.state.authenticator
    return authenticator.verify(token)


def asset_to_out(asset: Asset) -> AssetOut:
    return AssetOut(
        id=asset.id,
        symbol=asset.symbol,
        name=asset.name,
        current_price=format_coins(asset.current_price),
        image_url=asset.image_url,
    )


def user_to_out(user: User) -> ProfileOut:
    return ProfileOut(id=user.id, username=user.username, coins=format_coins(user.coins))


def settle_or_raise(
    request: Request, user_id: UUID, payload: TradeIn, trade_type: TradeType
) -> TradeResponse:
    settler: TradeSettler = request.app.state.settler
    logger = get_logger(request)
    try:
        result = settler.settle(user_id, payload.asset_id, payload.quantity, trade_type)
    except TradeError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in /api/{trade_type.value}: {e}")
        raise TradeError("unexpected error") from e

    return TradeResponse(
        success=True,
        message=result.message,
        trade=TradeOut(
            type=result.trade_type,
            asset_id=result.asset_id,
            quantity=result.quantity,
            price=format_coins(result.price),
            total=format_coins(result.total),
            new_price=format_coins(result.new_price),
            balance=format_coins(result.balance),
            history_recorded=result.history_recorded,
        ),
    )


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.post("/api/buy", response_model=TradeResponse)
def buy(
    payload: TradeIn,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
):
    return settle_or_raise(request, user_id, payload, TradeType.BUY)


@router.post("/api/sell", response_model=TradeResponse)
def sell(
    payload: TradeIn,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
):
    return settle_or_raise(request, user_id, payload, TradeType.SELL)


@router.get("/api/assets", response_model=list[AssetOut])
def list_assets(repository: Repository = Depends(get_repository)):
    return [asset_to_out(asset) for asset in repository.list_assets()]


@router.get("/api/assets/{asset_id}", response_model=AssetOut)
def get_asset(asset_id: UUID, repository: Repository = Depends(get_repository)):
    asset = repository.get_asset(asset_id)
    if asset is None:
        raise AssetNotFound()
    return asset_to_out(asset)


@router.get("/api/assets/{asset_id}/history", response_model=list[PricePointOut])
def get_asset_history(
    asset_id: UUID,
    limit: int | None = Query(default=None, ge=1, le=1000),
    repository: Repository = Depends(get_repository),
):
    if repository.get_asset(asset_id) is None:
        raise AssetNotFound()
    return [
        PricePointOut(price=format_coins(point.price), recorded_at=point.recorded_at)
        for point in repository.get_price_history(asset_id, limit)
    ]


@router.post("/api/profile", response_model=ProfileOut)
def create_profile(
    request: Request,
    payload: ProfileIn | None = None,
    user_id: UUID = Depends(get_current_user_id),
    repository: Repository = Depends(get_repository),
):
    """Create the caller's profile with the starting balance. Idempotent."""
    existing = repository.get_user(user_id)
    if existing is not None:
        return user_to_out(existing)

    username = (payload.username if payload else None) or f"user-{str(user_id)[:8]}"
    starting_coins: Decimal = request.app.state.starting_coins
    repository.add_user(User(id=user_id, username=username, coins=starting_coins))
    get_logger(request).info(f"Profile created for {user_id} with {starting_coins} coins")

    user = repository.get_user(user_id)
    if user is None:
        raise UserNotFound()
    return user_to_out(user)


@router.get("/api/profile", response_model=ProfileOut)
def get_profile(
    user_id: UUID = Depends(get_current_user_id),
    repository: Repository = Depends(get_repository),
):
    user = repository.get_user(user_id)
    if user is None:
        raise UserNotFound()
    return user_to_out(user)


@router.get("/api/portfolio", response_model=PortfolioOut)
def get_portfolio(
    user_id: UUID = Depends(get_current_user_id),
    repository: Repository = Depends(get_repository),
):
    user = repository.get_user(user_id)
    if user is None:
        raise UserNotFound()

    positions = summarize_portfolio(
        repository.get_user_transactions(user_id), repository.list_assets()
    )
    return PortfolioOut(
        coins=format_coins(user.coins),
        positions=[
            PositionOut(
                asset=asset_to_out(p.asset),
                quantity=p.quantity,
                invested=format_coins(p.invested),
                current_value=format_coins(p.current_value),
                profit=format_coins(p.profit),
            )
            for p in positions
        ],
    )


@router.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    user_id: UUID = Depends(get_current_user_id),
    repository: Repository = Depends(get_repository),
):
    return [
        TransactionOut(
            id=tx.id,
            asset_id=tx.asset_id,
            type=tx.type,
            quantity=tx.quantity,
            price_at_transaction=format_coins(tx.price_at_transaction),
            total=format_coins(tx.total),
            created_at=tx.created_at,
        )
        for tx in repository.get_user_transactions(user_id)
    ]


async def trade_error_handler(request: Request, exc: TradeError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        {"error": exc.message}, status_code=exc.status_code, headers=headers
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    field = "request"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        if loc:
            field = loc[-1]
    return JSONResponse({"error": f"invalid {field}"}, status_code=400)


def create_app(
    repository: Repository,
    authenticator: Authenticator,
    settler: TradeSettler,
    logger: logging.Logger,
    starting_coins: Decimal = Decimal("1000"),
    allowed_origins: tuple[str, ...] = (),
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Build the API around already-constructed collaborators."""
    app = FastAPI(title="OneStonks API", lifespan=lifespan)
    app.state.repository = repository
    app.state.authenticator = authenticator
    app.state.settler = settler
    app.state.logger = logger
    app.state.starting_coins = starting_coins

    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(TradeError, trade_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)
    return app


def app_from_env() -> FastAPI:
    """
    Build the production app from environment variables.

    Serve with: uvicorn --factory onestonks.api:app_from_env
    """
    settings = settings_from_env()
    validate_settings(settings, require_auth=True)

    logger = create_logger("onestonks", settings.log_level)
    log_settings(logger, settings)

    pool: ConnectionPool[Connection[TupleRow]] = ConnectionPool(
        settings.database_url, open=False
    )
    repository = PostgresRepository(pool)
    authenticator = SupabaseAuthClient(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        timeout=settings.auth_timeout,
        logger=logger,
    )
    settler = TradeSettler(repository, logger, settings.pricing())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        pool.open()
        try:
            yield
        finally:
            pool.close()

    return create_app(
        repository=repository,
        authenticator=authenticator,
        settler=settler,
        logger=logger,
        starting_coins=settings.starting_coins,
        allowed_origins=settings.allowed_origins,
        lifespan=lifespan,
    )
