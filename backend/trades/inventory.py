"""
Car ownership store backed by the ``user_cars`` table.

All methods take the caller's session so that reads and ownership changes
happen inside the trade transaction.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from database import UserCar
from trades.errors import TransactionFailureError

logger = logging.getLogger(__name__)


class SqlInventoryStore:
    """Reads and reassigns car owners within a caller-supplied session."""

    def owners_of(self, session: Session, car_ids: list[int]) -> dict[int, int]:
        """Map each existing car id to its current owner, locking the rows."""
        if not car_ids:
            return {}

        rows = session.execute(
            select(UserCar.id, UserCar.user_id)
            .where(UserCar.id.in_(sorted(set(car_ids))))
            .with_for_update()
        ).all()

        return {car_id: user_id for car_id, user_id in rows}

    def verify_owner(self, session: Session, user_id: int, car_ids: list[int]) -> bool:
        owners = self.owners_of(session, car_ids)
        return all(owners.get(car_id) == user_id for car_id in car_ids)

    def reassign_owner(self, session: Session, car_ids: list[int], new_owner: int) -> None:
        """
        Give every car in ``car_ids`` to ``new_owner``.

        Raises:
            TransactionFailureError: If any of the cars does not exist. The
                caller's transaction must then be rolled back.
        """
        if not car_ids:
            return

        unique_ids = sorted(set(car_ids))
        result = session.execute(
            update(UserCar)
            .where(UserCar.id.in_(unique_ids))
            .values(user_id=new_owner)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != len(unique_ids):
            logger.error(
                "Reassigned %d of %d cars to user %d",
                result.rowcount, len(unique_ids), new_owner,
            )
            raise TransactionFailureError(f"Could not reassign cars {unique_ids} to user {new_owner}")

        logger.debug("Reassigned cars %s to user %d", car_ids, new_owner)
