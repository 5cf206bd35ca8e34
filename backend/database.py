"""
Database engine, session factory and table definitions.

Trades and car ownership live in the same database so that a trade and the
ownership changes it causes commit or roll back together.
"""
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

import config

logger = logging.getLogger(__name__)

Base = declarative_base()

# Ordered integer arrays on PostgreSQL, JSON lists on SQLite
CarIdList = ARRAY(Integer).with_variant(JSON(), "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trade(Base):
    """A trade offer between two users, kept forever as history."""

    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id_from = Column(Integer, nullable=False, index=True)
    user_id_to = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    user_from_user_car_ids = Column(CarIdList, nullable=False)
    user_to_user_car_ids = Column(CarIdList, nullable=False)
    traded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Trade #{self.id} {self.user_id_from}->{self.user_id_to} {self.status}>"


class UserCar(Base):
    """A collected car instance. Only ownership is relevant to trading."""

    __tablename__ = "user_cars"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)


def build_engine(url: str) -> Engine:
    """Create an engine; PostgreSQL connections run at the configured isolation level."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        isolation_level=config.DATABASE_ISOLATION_LEVEL,
        pool_pre_ping=True,
    )


@lru_cache
def get_engine() -> Engine:
    return build_engine(config.DATABASE_URL)


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine())


def init_db(engine: Optional[Engine] = None) -> None:
    """Create any missing tables."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database tables ready on %s", engine.url.render_as_string(hide_password=True))
