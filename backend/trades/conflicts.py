"""
Auto-decline of pending trades made stale by an accepted trade.

Cars are not reserved when a trade is offered, so the same car can sit in
several pending trades. Once one of them is accepted the others can never be
satisfied and are declined in the same transaction.
"""
import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from database import Trade
from models.trade import TradeStatus

logger = logging.getLogger(__name__)


def auto_decline_conflicting(session: Session, exclude_trade_id: int, moved_car_ids: list[int]) -> list[int]:
    """
    Decline every pending trade, other than ``exclude_trade_id``, that
    references any of ``moved_car_ids`` on either side.

    Returns:
        list[int]: IDs of the trades that were declined.
    """
    moved = set(moved_car_ids)
    if not moved:
        return []

    query = (
        select(Trade)
        .where(Trade.status == TradeStatus.PENDING.value, Trade.id != exclude_trade_id)
        .order_by(Trade.id)
        .with_for_update()
    )

    if session.get_bind().dialect.name == "postgresql":
        overlap = sorted(moved)
        query = query.where(
            or_(
                Trade.user_from_user_car_ids.overlap(overlap),
                Trade.user_to_user_car_ids.overlap(overlap),
            )
        )

    declined = []
    for trade in session.execute(query).scalars():
        if moved.isdisjoint(trade.user_from_user_car_ids) and moved.isdisjoint(trade.user_to_user_car_ids):
            continue

        trade.status = TradeStatus.DECLINED.value
        declined.append(trade.id)

    session.flush()

    if declined:
        logger.info("Auto-declined trades %s after trade %d moved cars %s", declined, exclude_trade_id, sorted(moved))

    return declined
