"""
Conftest for unit tests.

Trades and cars live in an in-memory SQLite database; the subscription gate,
the feed publisher and the Supabase client are mocks.
All tests in this directory are automatically marked as unit tests.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import sys
from pathlib import Path

# Add parent directory to path to import main
backend_path = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_path))

from main import app, get_trade_query_service, get_trade_service
from database import Base, Trade, UserCar
from trades.inventory import SqlInventoryStore
from trades.queries import TradeQueryService
from trades.service import TradeService


def pytest_collection_modifyitems(items):
    """Automatically mark all tests in this directory as unit tests."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


# ============== Database fixtures ==============

@pytest.fixture
def engine():
    """A fresh in-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def give_cars(session_factory):
    """Create cars owned by a user: give_cars(user_id, 1, 2, 3)."""
    def _give(user_id, *car_ids):
        with session_factory.begin() as session:
            session.add_all([UserCar(id=car_id, user_id=user_id) for car_id in car_ids])
    return _give


@pytest.fixture
def owner_of(session_factory):
    """Current owner of a car."""
    def _owner(car_id):
        with session_factory() as session:
            return session.get(UserCar, car_id).user_id
    return _owner


@pytest.fixture
def stored_trade(session_factory):
    """Read a trade row straight from the database."""
    def _get(trade_id):
        with session_factory() as session:
            trade = session.get(Trade, trade_id)
            session.expunge(trade)
            return trade
    return _get


# ============== Users ==============

@pytest.fixture
def user_a():
    return 1


@pytest.fixture
def user_b():
    return 2


@pytest.fixture
def user_c():
    return 3


@pytest.fixture
def third_party():
    return 4


# ============== Collaborators ==============

@pytest.fixture
def mock_supabase():
    """Create a mock Supabase client."""
    mock = MagicMock()

    # Setup table method to return the mock itself for chaining
    mock.table.return_value = mock
    mock.select.return_value = mock
    mock.insert.return_value = mock
    mock.update.return_value = mock
    mock.delete.return_value = mock
    mock.eq.return_value = mock
    mock.gte.return_value = mock
    mock.limit.return_value = mock

    return mock


@pytest.fixture
def mock_eligibility():
    gate = MagicMock()
    gate.is_eligible_to_trade.return_value = True
    return gate


@pytest.fixture
def mock_publisher():
    return MagicMock()


@pytest.fixture
def inventory():
    return SqlInventoryStore()


@pytest.fixture
def trade_service(session_factory, inventory, mock_eligibility, mock_publisher):
    return TradeService(session_factory, inventory, mock_eligibility, mock_publisher)


@pytest.fixture
def query_service(session_factory):
    return TradeQueryService(session_factory, max_page_size=50)


# ============== HTTP ==============

@pytest.fixture
def client(trade_service, query_service):
    """Test client wired to the in-memory trade engine."""
    app.dependency_overrides[get_trade_service] = lambda: trade_service
    app.dependency_overrides[get_trade_query_service] = lambda: query_service
    yield TestClient(app)
    app.dependency_overrides.clear()
