from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from supabase import create_client, Client

import config
from database import get_session_factory, init_db
from models.trade import (
    TradeCreate,
    TradeRespond,
    TradeResponse,
    TradeListResponse,
)
from trades.collaborators import (
    EligibilityGate,
    EventPublisher,
    LoggingEventPublisher,
    OpenEligibilityGate,
    SupabaseFeedPublisher,
    SupabaseSubscriptionGate,
)
from trades.errors import TradeError, TradeErrorKind
from trades.inventory import SqlInventoryStore
from trades.queries import TradeQueryService
from trades.service import TradeService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

TRADE_ERROR_STATUS_CODES = {
    TradeErrorKind.INELIGIBLE_PARTY: 403,
    TradeErrorKind.NOT_OWNED: 409,
    TradeErrorKind.NOT_RECIPIENT: 403,
    TradeErrorKind.INVALID_STATE: 409,
    TradeErrorKind.NOT_FOUND: 404,
    TradeErrorKind.INVALID_PARTICIPANTS: 400,
    TradeErrorKind.INVALID_ITEMS: 400,
    TradeErrorKind.TRANSACTION_FAILURE: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="CarBN API", lifespan=lifespan)

# CORS for the mobile app
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============== Dependencies ==============

@lru_cache
def get_supabase() -> Client:
    """Supabase client, created on first use."""
    return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)


def get_eligibility_gate() -> EligibilityGate:
    if not config.TRADING_REQUIRES_SUBSCRIPTION:
        return OpenEligibilityGate()
    return SupabaseSubscriptionGate(get_supabase())


def get_event_publisher() -> EventPublisher:
    if not config.SUPABASE_URL:
        return LoggingEventPublisher()
    return SupabaseFeedPublisher(get_supabase())


def get_trade_service() -> TradeService:
    return TradeService(
        session_factory=get_session_factory(),
        inventory=SqlInventoryStore(),
        eligibility=get_eligibility_gate(),
        publisher=get_event_publisher(),
    )


def get_trade_query_service() -> TradeQueryService:
    return TradeQueryService(get_session_factory())


def get_current_user_id(x_user_id: Optional[int] = Header(default=None)) -> int:
    """Caller identity as resolved by the auth layer in front of the API."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


@app.exception_handler(TradeError)
async def trade_error_handler(request: Request, exc: TradeError):
    status_code = TRADE_ERROR_STATUS_CODES.get(exc.kind, 500)
    detail = exc.message
    if exc.kind == TradeErrorKind.TRANSACTION_FAILURE:
        logger.error("Trade request %s %s failed: %s", request.method, request.url.path, exc.message)
        detail = "Trade could not be completed, please try again"

    return JSONResponse(status_code=status_code, content={"detail": detail, "error": exc.kind.value})


@app.get("/")
def read_root():
    return {"message": "CarBN API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}


# ============== Trade Endpoints ==============

@app.post("/trade/request", response_model=TradeResponse, status_code=201)
def create_trade(
    trade: TradeCreate,
    user_id: int = Depends(get_current_user_id),
    service: TradeService = Depends(get_trade_service),
):
    """Offer a trade to another user."""
    logger.info("Creating trade request from user %d to user %d", user_id, trade.user_id_to)
    return service.create_trade(
        user_id,
        trade.user_id_to,
        trade.user_from_user_car_ids,
        trade.user_to_user_car_ids,
    )


@app.post("/trade/respond", response_model=TradeResponse)
def respond_to_trade(
    body: TradeRespond,
    user_id: int = Depends(get_current_user_id),
    service: TradeService = Depends(get_trade_service),
):
    """Accept or decline a pending trade."""
    logger.info("Processing trade %d response: %s", body.trade_id, body.response.value)
    return service.respond_to_trade(user_id, body.trade_id, body.response)


@app.get("/trade/history", response_model=TradeListResponse)
def get_user_trades(
    page: int = Query(1, ge=1),
    page_size: int = Query(config.TRADE_HISTORY_PAGE_SIZE, ge=1, le=config.TRADE_HISTORY_MAX_PAGE_SIZE),
    user_id: int = Depends(get_current_user_id),
    queries: TradeQueryService = Depends(get_trade_query_service),
):
    """Get the caller's trades, newest first."""
    trades, total_count = queries.get_user_trades(user_id, page, page_size)

    return {
        "trades": trades,
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
    }


@app.get("/trade/{trade_id}", response_model=TradeResponse)
def get_trade(
    trade_id: int,
    user_id: int = Depends(get_current_user_id),
    queries: TradeQueryService = Depends(get_trade_query_service),
):
    """Get a specific trade by ID."""
    return queries.get_trade_by_id(trade_id)
