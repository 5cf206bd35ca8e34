import os
from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database holding trades and user_cars
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./carbn.db")
DATABASE_ISOLATION_LEVEL = os.getenv("DATABASE_ISOLATION_LEVEL", "SERIALIZABLE")

# Supabase project (subscriptions + feed)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

TRADING_REQUIRES_SUBSCRIPTION = _get_bool("TRADING_REQUIRES_SUBSCRIPTION", True)

TRADE_HISTORY_PAGE_SIZE = int(os.getenv("TRADE_HISTORY_PAGE_SIZE", "10"))
TRADE_HISTORY_MAX_PAGE_SIZE = int(os.getenv("TRADE_HISTORY_MAX_PAGE_SIZE", "100"))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
