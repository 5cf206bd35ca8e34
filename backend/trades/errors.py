"""
Errors raised by the trade engine.

Every error carries a ``kind`` so callers can branch on it instead of parsing
messages.
"""
from enum import Enum
from typing import Optional


class TradeErrorKind(str, Enum):
    INELIGIBLE_PARTY = "ineligible_party"
    NOT_OWNED = "not_owned"
    NOT_RECIPIENT = "not_recipient"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"
    INVALID_PARTICIPANTS = "invalid_participants"
    INVALID_ITEMS = "invalid_items"
    TRANSACTION_FAILURE = "transaction_failure"


class TradeError(Exception):
    """Base class for trade engine failures."""

    kind: TradeErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class IneligiblePartyError(TradeError):
    kind = TradeErrorKind.INELIGIBLE_PARTY

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} does not have trading privileges")
        self.user_id = user_id


class NotOwnedError(TradeError):
    """A car is not owned by the user who is supposed to give it away."""

    kind = TradeErrorKind.NOT_OWNED

    def __init__(self, car_id: int, user_id: int):
        super().__init__(f"User {user_id} does not own car {car_id}")
        self.car_id = car_id
        self.user_id = user_id


class NotRecipientError(TradeError):
    kind = TradeErrorKind.NOT_RECIPIENT

    def __init__(self, trade_id: int, user_id: int):
        super().__init__(f"User {user_id} is not the recipient of trade {trade_id}")
        self.trade_id = trade_id
        self.user_id = user_id


class InvalidStateError(TradeError):
    kind = TradeErrorKind.INVALID_STATE

    def __init__(self, trade_id: int, status: str):
        super().__init__(f"Trade {trade_id} is {status}, not pending")
        self.trade_id = trade_id
        self.status = status


class TradeNotFoundError(TradeError):
    """No trade with this id, or (on decline) no pending trade with this id."""

    kind = TradeErrorKind.NOT_FOUND

    def __init__(self, trade_id: int, pending_only: bool = False):
        qualifier = "pending trade" if pending_only else "trade"
        super().__init__(f"No {qualifier} found with ID {trade_id}")
        self.trade_id = trade_id


class InvalidParticipantsError(TradeError):
    kind = TradeErrorKind.INVALID_PARTICIPANTS


class InvalidItemsError(TradeError):
    kind = TradeErrorKind.INVALID_ITEMS


class TransactionFailureError(TradeError):
    """The store or the subscription check failed; nothing was applied."""

    kind = TradeErrorKind.TRANSACTION_FAILURE

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
