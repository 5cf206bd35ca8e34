"""Read-only access to trade history."""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import sessionmaker

import config
from database import Trade
from models.trade import TradeResponse
from trades.errors import TradeNotFoundError

logger = logging.getLogger(__name__)


class TradeQueryService:
    def __init__(self, session_factory: sessionmaker, max_page_size: int = config.TRADE_HISTORY_MAX_PAGE_SIZE):
        self.session_factory = session_factory
        self.max_page_size = max_page_size

    def get_user_trades(self, user_id: int, page: int, page_size: int) -> tuple[list[TradeResponse], int]:
        """
        Trades the user sent or received, newest first.

        Returns:
            tuple[list[TradeResponse], int]: The requested page and the total
            number of trades involving the user.
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), self.max_page_size)
        logger.info("Fetching trades for user %d, page %d, page size %d", user_id, page, page_size)

        involves_user = or_(Trade.user_id_from == user_id, Trade.user_id_to == user_id)

        with self.session_factory() as session:
            total_count = session.execute(
                select(func.count()).select_from(Trade).where(involves_user)
            ).scalar_one()

            rows = session.execute(
                select(Trade)
                .where(involves_user)
                .order_by(Trade.created_at.desc(), Trade.id.desc())
                .limit(page_size)
                .offset((page - 1) * page_size)
            ).scalars().all()

            trades = [TradeResponse.model_validate(row) for row in rows]

        logger.info("Fetched %d of %d trades for user %d", len(trades), total_count, user_id)
        return trades, total_count

    def get_trade_by_id(self, trade_id: int) -> TradeResponse:
        """Look up a single trade. Callers decide who may see it."""
        with self.session_factory() as session:
            trade = session.get(Trade, trade_id)
            if trade is None:
                logger.info("No trade found with ID %d", trade_id)
                raise TradeNotFoundError(trade_id)

            return TradeResponse.model_validate(trade)
