"""Ownership checks run before a trade is created or executed."""
import logging

from sqlalchemy.orm import Session

from trades.errors import NotOwnedError
from trades.inventory import SqlInventoryStore

logger = logging.getLogger(__name__)


def verify_ownership(session: Session, inventory: SqlInventoryStore, user_id: int, car_ids: list[int]) -> None:
    """
    Confirm ``user_id`` currently owns every car in ``car_ids``.

    Must be called with the session of the transaction that will act on the
    result, so the owners read here cannot change before it commits.

    Raises:
        NotOwnedError: For the first car, in list order, not owned by the user.
    """
    if not car_ids:
        return

    logger.info("Verifying ownership of cars %s for user %d", car_ids, user_id)

    owners = inventory.owners_of(session, car_ids)
    for car_id in car_ids:
        if owners.get(car_id) != user_id:
            logger.info("User %d does not own car %d (owner: %s)", user_id, car_id, owners.get(car_id))
            raise NotOwnedError(car_id, user_id)
