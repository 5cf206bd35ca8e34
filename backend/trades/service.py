"""
Trade state machine: offering, accepting and declining trades.

Every mutating operation runs in a single database transaction. That
transaction is the only synchronisation between concurrent requests: on
PostgreSQL it runs at SERIALIZABLE and locks the trade and car rows it reads,
so two accepts touching the same car cannot both commit.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import Trade
from models.trade import TradeDecision, TradeResponse, TradeStatus
from trades.collaborators import EligibilityGate, EventPublisher
from trades.conflicts import auto_decline_conflicting
from trades.errors import (
    IneligiblePartyError,
    InvalidItemsError,
    InvalidParticipantsError,
    InvalidStateError,
    NotRecipientError,
    TradeNotFoundError,
    TransactionFailureError,
)
from trades.inventory import SqlInventoryStore
from trades.ownership import verify_ownership

logger = logging.getLogger(__name__)


class TradeService:
    """Creates trades and moves them from pending to accepted or declined."""

    def __init__(
        self,
        session_factory: sessionmaker,
        inventory: SqlInventoryStore,
        eligibility: EligibilityGate,
        publisher: EventPublisher,
    ):
        self.session_factory = session_factory
        self.inventory = inventory
        self.eligibility = eligibility
        self.publisher = publisher

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Yield a session inside a transaction that commits on success.

        Trade errors roll back and propagate unchanged; store errors roll back
        and are raised as TransactionFailureError.
        """
        try:
            with self.session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("Trade transaction rolled back: %s", e)
            raise TransactionFailureError("Trade transaction failed", cause=e) from e

    def create_trade(
        self,
        user_id_from: int,
        user_id_to: int,
        from_car_ids: list[int],
        to_car_ids: list[int],
    ) -> TradeResponse:
        """
        Offer ``from_car_ids`` in exchange for ``to_car_ids``.

        Repeating the exact same offer while the first is still pending
        returns the existing trade instead of creating another.

        Raises:
            InvalidParticipantsError: Sender and recipient are the same user.
            InvalidItemsError: No cars offered, or a car listed twice.
            IneligiblePartyError: Either party may not trade.
            TransactionFailureError: The subscription check or the store failed.
            NotOwnedError: A party does not own a car on its side.
        """
        logger.info("Starting trade creation: from user %d to user %d", user_id_from, user_id_to)
        from_car_ids = list(from_car_ids)
        to_car_ids = list(to_car_ids)
        self._validate_offer(user_id_from, user_id_to, from_car_ids, to_car_ids)

        with self.transaction() as session:
            for user_id in (user_id_from, user_id_to):
                self._require_eligible(user_id)

            existing = self._find_identical_pending(session, user_id_from, user_id_to, from_car_ids, to_car_ids)
            if existing is not None:
                logger.info("Pending trade %d already exists with the same parameters", existing.id)
                return TradeResponse.model_validate(existing)

            verify_ownership(session, self.inventory, user_id_from, from_car_ids)
            verify_ownership(session, self.inventory, user_id_to, to_car_ids)

            trade = Trade(
                user_id_from=user_id_from,
                user_id_to=user_id_to,
                status=TradeStatus.PENDING.value,
                user_from_user_car_ids=from_car_ids,
                user_to_user_car_ids=to_car_ids,
                traded_at=None,
            )
            session.add(trade)
            session.flush()

            logger.info("Created trade %d from user %d to user %d", trade.id, user_id_from, user_id_to)
            return TradeResponse.model_validate(trade)

    def accept_trade(self, user_id: int, trade_id: int) -> TradeResponse:
        """
        Execute a pending trade on behalf of its recipient.

        Ownership is checked again because cars may have moved since the
        offer was made. All cars change hands, the trade is marked accepted
        and every other pending trade involving the moved cars is declined,
        or nothing happens at all.

        Raises:
            TradeNotFoundError: No trade with this id.
            NotRecipientError: ``user_id`` is not the trade's recipient.
            InvalidStateError: The trade is no longer pending.
            NotOwnedError: A car is no longer owned by the party offering it.
                The trade stays pending.
        """
        logger.info("Starting trade acceptance process for trade ID %d", trade_id)

        with self.transaction() as session:
            trade = session.execute(
                select(Trade).where(Trade.id == trade_id).with_for_update()
            ).scalar_one_or_none()

            if trade is None:
                raise TradeNotFoundError(trade_id)

            if trade.user_id_to != user_id:
                logger.info("User %d is not the recipient of trade %d", user_id, trade_id)
                raise NotRecipientError(trade_id, user_id)

            if trade.status != TradeStatus.PENDING.value:
                logger.info("Trade %d is %s, cannot accept", trade_id, trade.status)
                raise InvalidStateError(trade_id, trade.status)

            from_car_ids = list(trade.user_from_user_car_ids)
            to_car_ids = list(trade.user_to_user_car_ids)

            verify_ownership(session, self.inventory, trade.user_id_from, from_car_ids)
            verify_ownership(session, self.inventory, trade.user_id_to, to_car_ids)

            logger.info("Updating car ownerships for trade ID %d", trade_id)
            self.inventory.reassign_owner(session, from_car_ids, trade.user_id_to)
            self.inventory.reassign_owner(session, to_car_ids, trade.user_id_from)

            trade.status = TradeStatus.ACCEPTED.value
            trade.traded_at = datetime.now(timezone.utc)
            session.flush()

            auto_decline_conflicting(session, trade.id, from_car_ids + to_car_ids)

            accepted = TradeResponse.model_validate(trade)

        logger.info("Trade %d accepted", trade_id)
        self._publish_trade_completed(accepted)
        return accepted

    def decline_trade(self, trade_id: int, user_id: Optional[int] = None) -> TradeResponse:
        """
        Decline a pending trade. When ``user_id`` is given it must be one of
        the two parties.

        Raises:
            TradeNotFoundError: No pending trade with this id (visible to the user).
        """
        logger.info("Declining trade ID %d", trade_id)

        with self.transaction() as session:
            statement = update(Trade).where(
                Trade.id == trade_id,
                Trade.status == TradeStatus.PENDING.value,
            )
            if user_id is not None:
                statement = statement.where(or_(Trade.user_id_from == user_id, Trade.user_id_to == user_id))

            result = session.execute(
                statement.values(status=TradeStatus.DECLINED.value).execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                logger.info("No pending trade found with ID %d", trade_id)
                raise TradeNotFoundError(trade_id, pending_only=True)

            declined = TradeResponse.model_validate(session.get(Trade, trade_id))

        logger.info("Trade %d declined successfully", trade_id)
        return declined

    def respond_to_trade(self, user_id: int, trade_id: int, decision: TradeDecision) -> TradeResponse:
        """Route a recipient's answer to accept or decline."""
        if decision == TradeDecision.ACCEPT:
            return self.accept_trade(user_id, trade_id)
        if decision == TradeDecision.DECLINE:
            return self.decline_trade(trade_id, user_id=user_id)
        raise ValueError(f"Invalid trade decision: {decision}")

    def _validate_offer(self, user_id_from: int, user_id_to: int, from_car_ids: list[int], to_car_ids: list[int]) -> None:
        if user_id_from == user_id_to:
            raise InvalidParticipantsError("A user cannot trade with themselves")

        if not from_car_ids:
            raise InvalidItemsError("A trade must offer at least one car")

        all_car_ids = from_car_ids + to_car_ids
        if len(set(all_car_ids)) != len(all_car_ids):
            raise InvalidItemsError("A car may only appear once in a trade")

    def _require_eligible(self, user_id: int) -> None:
        try:
            eligible = self.eligibility.is_eligible_to_trade(user_id)
        except Exception as e:
            logger.error("Failed to check subscription for user %d: %s", user_id, e)
            raise TransactionFailureError(f"Failed to check subscription for user {user_id}", cause=e) from e

        if not eligible:
            logger.info("User %d is not eligible to trade", user_id)
            raise IneligiblePartyError(user_id)

    def _find_identical_pending(
        self,
        session: Session,
        user_id_from: int,
        user_id_to: int,
        from_car_ids: list[int],
        to_car_ids: list[int],
    ) -> Optional[Trade]:
        """Pending trade with the same parties and the same car lists, in order."""
        candidates = session.execute(
            select(Trade).where(
                Trade.status == TradeStatus.PENDING.value,
                Trade.user_id_from == user_id_from,
                Trade.user_id_to == user_id_to,
            ).order_by(Trade.id)
        ).scalars()

        for trade in candidates:
            if list(trade.user_from_user_car_ids) == from_car_ids and list(trade.user_to_user_car_ids) == to_car_ids:
                return trade

        return None

    def _publish_trade_completed(self, trade: TradeResponse) -> None:
        # The trade is already committed; a feed failure must not undo it
        try:
            self.publisher.publish_trade_completed(trade.id, trade.user_id_from, trade.user_id_to)
        except Exception:
            logger.exception("Failed to publish trade_completed event for trade %d", trade.id)
