import itertools
import pytest
from fastapi.testclient import TestClient
from app.core.config import Settings
from app.core.db import Base, build_engine, build_session_factory
from app.core.identity import IdentityProvider
from app.core.store import RecordStore
from app.main import create_app
from app.services.account_service import AccountService
from app.services.report_service import ReportService

# Setup an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite://"

@pytest.fixture(scope="function")
def session_factory():
    engine = build_engine(SQLALCHEMY_DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()

@pytest.fixture
def store(session_factory):
    return RecordStore(session_factory)

@pytest.fixture
def identity(session_factory):
    return IdentityProvider(session_factory, secret="test-secret", bcrypt_rounds=4)

@pytest.fixture
def accounts(store, identity):
    return AccountService(store, identity)

@pytest.fixture
def clock():
    """Deterministic millisecond clock that advances by one second per call."""
    ticks = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(ticks)

@pytest.fixture
def reports(store, clock):
    return ReportService(store, clock=clock)

@pytest.fixture
def client():
    settings = Settings(DATABASE_URL=SQLALCHEMY_DATABASE_URL, BCRYPT_ROUNDS=4, JWT_SECRET_KEY="test-secret")
    with TestClient(create_app(settings)) as test_client:
        yield test_client
