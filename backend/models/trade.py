# backend/models/trade.py
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional


# ============== Enums ==============

class TradeStatus(str, Enum):
    """Trade lifecycle states. ACCEPTED and DECLINED are terminal."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class TradeDecision(str, Enum):
    """Answers a recipient can give to a pending trade."""
    ACCEPT = "accept"
    DECLINE = "decline"


# ============== Request Schemas ==============

class TradeCreate(BaseModel):
    """Schema for offering a trade to another user."""
    user_id_to: int = Field(description="User ID of the trade recipient")
    user_from_user_car_ids: list[int] = Field(
        min_length=1,
        description="Cars the sender is offering"
    )
    user_to_user_car_ids: list[int] = Field(
        default=[],
        description="Cars the sender wants from the recipient"
    )


class TradeRespond(BaseModel):
    """Schema for answering a trade offer."""
    trade_id: int
    response: TradeDecision


# ============== Response Schemas ==============

class TradeResponse(BaseModel):
    """Full trade record."""
    id: int
    user_id_from: int
    user_id_to: int
    status: TradeStatus
    user_from_user_car_ids: list[int]
    user_to_user_car_ids: list[int]
    created_at: datetime
    traded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "traded_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Stored timestamps are UTC even when the database drops the offset."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TradeListResponse(BaseModel):
    """Paginated list of trades."""
    trades: list[TradeResponse]
    total_count: int
    page: int
    page_size: int
