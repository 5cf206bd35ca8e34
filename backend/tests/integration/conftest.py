"""
Integration test fixtures for testing against a real PostgreSQL database.

Set TEST_DATABASE_URL in backend/.env.test (or the environment) to a
disposable PostgreSQL database, e.g. the one started by `supabase start`.
All tests in this directory are automatically marked as integration tests.
"""
import pytest
import os
from pathlib import Path
from dotenv import load_dotenv
from unittest.mock import MagicMock
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from database import Base, UserCar, build_engine
from trades.inventory import SqlInventoryStore
from trades.queries import TradeQueryService
from trades.service import TradeService


def pytest_collection_modifyitems(items):
    """Automatically mark all tests in this directory as integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def setup_test_environment():
    """Load .env.test at session start."""
    # .env.test is in the backend root
    env_test_path = Path(__file__).parent.parent.parent / ".env.test"
    load_dotenv(env_test_path, override=True)
    yield


@pytest.fixture(scope="session")
def pg_engine(setup_test_environment):
    """Engine connected to the test database, with the trade tables created."""
    url = os.getenv("TEST_DATABASE_URL")

    if not url or not url.startswith("postgresql"):
        pytest.skip("TEST_DATABASE_URL must point at a PostgreSQL database")

    engine = build_engine(url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def pg_session_factory(pg_engine):
    """Session factory over freshly emptied tables."""
    with pg_engine.begin() as conn:
        conn.execute(text("TRUNCATE trades, user_cars RESTART IDENTITY"))

    return sessionmaker(bind=pg_engine)


@pytest.fixture
def publisher():
    return MagicMock()


@pytest.fixture
def pg_trade_service(pg_session_factory, publisher):
    gate = MagicMock()
    gate.is_eligible_to_trade.return_value = True
    return TradeService(pg_session_factory, SqlInventoryStore(), gate, publisher)


@pytest.fixture
def pg_query_service(pg_session_factory):
    return TradeQueryService(pg_session_factory)


@pytest.fixture
def pg_give_cars(pg_session_factory):
    def _give(user_id, *car_ids):
        with pg_session_factory.begin() as session:
            session.add_all([UserCar(id=car_id, user_id=user_id) for car_id in car_ids])
    return _give


@pytest.fixture
def pg_owner_of(pg_session_factory):
    def _owner(car_id):
        with pg_session_factory() as session:
            return session.get(UserCar, car_id).user_id
    return _owner
