"""
Services the trade engine depends on but does not own: the subscription
check that gates trading, and the feed that announces completed trades.
"""
import logging
from datetime import datetime, timezone
from typing import Protocol

from supabase import Client

logger = logging.getLogger(__name__)

TRADE_COMPLETED_FEED_TYPE = "trade_completed"


class EligibilityGate(Protocol):
    def is_eligible_to_trade(self, user_id: int) -> bool: ...


class EventPublisher(Protocol):
    def publish_trade_completed(self, trade_id: int, user_id_from: int, user_id_to: int) -> None: ...


class SupabaseSubscriptionGate:
    """Only users with an active, unexpired subscription may trade."""

    def __init__(self, client: Client):
        self.client = client

    def is_eligible_to_trade(self, user_id: int) -> bool:
        result = self.client.table("user_subscriptions").select(
            "is_active, subscription_end"
        ).eq("user_id", user_id).eq("is_active", True).execute()

        if not result.data:
            logger.info("No active subscription found for user %d", user_id)
            return False

        subscription_end = result.data[0].get("subscription_end")
        if subscription_end is None:
            return True

        # Supabase returns ISO-8601 strings; older Pythons reject a trailing "Z"
        end = datetime.fromisoformat(str(subscription_end).replace("Z", "+00:00"))
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

        active = end > datetime.now(timezone.utc)
        logger.info("User %d has active subscription: %s", user_id, active)
        return active


class OpenEligibilityGate:
    """Lets everyone trade."""

    def is_eligible_to_trade(self, user_id: int) -> bool:
        return True


class SupabaseFeedPublisher:
    """Announces a completed trade in the sender's feed."""

    def __init__(self, client: Client):
        self.client = client

    def publish_trade_completed(self, trade_id: int, user_id_from: int, user_id_to: int) -> None:
        self.client.table("feed").insert({
            "user_id": user_id_from,
            "type": TRADE_COMPLETED_FEED_TYPE,
            "reference_id": trade_id,
            "related_user_id": user_id_to,
        }).execute()

        logger.info("Created feed item for user %d of type %s with reference %d",
                    user_id_from, TRADE_COMPLETED_FEED_TYPE, trade_id)


class LoggingEventPublisher:
    """Stands in for the feed when Supabase is not configured."""

    def publish_trade_completed(self, trade_id: int, user_id_from: int, user_id_to: int) -> None:
        logger.info("Feed disabled, trade %d between users %d and %d not published",
                    trade_id, user_id_from, user_id_to)
