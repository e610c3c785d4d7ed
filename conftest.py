import os
import shutil
import tempfile
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Create a temporary SQLite database file for the whole test session
_TEMP_DIR = tempfile.mkdtemp(prefix="commission_tests_")
_DB_FILE = os.path.join(_TEMP_DIR, "test_commission.db")
os.environ["COMMISSION_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["COMMISSION_BCRYPT_ROUNDS"] = "4"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize a fresh temporary SQLite database for tests and clean it up after."""
    # Import after setting env vars so the app uses the temp DB
    from commissiondesk.database import engine, init_db

    # Enable SQLite foreign keys
    if "sqlite" in str(engine.url):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    init_db()

    yield

    engine.dispose()
    shutil.rmtree(_TEMP_DIR, ignore_errors=True)


# Each test starts from a clean domain state; only the seeded admin survives.
@pytest.fixture(autouse=True)
def _clean_domain_tables():
    from commissiondesk import config, crud
    from commissiondesk.database import SessionLocal

    session = SessionLocal()
    try:
        crud.reset_application_data(session, keep_usernames=[config.DEFAULT_ADMIN_USERNAME])
    finally:
        session.close()


@pytest.fixture()
def db_session():
    """Isolated in-memory database shared across threads for TestClient use."""
    from commissiondesk.database import Base

    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_user(db_session):
    from commissiondesk.auth import User

    def _make(username, role="sales_person", commission_rate=0, name=None, password="secret123"):
        user = User.create_user(
            username,
            password,
            name=name or username.title(),
            role=role,
            commission_rate=Decimal(str(commission_rate)),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_campaign(db_session):
    from commissiondesk.models import Campaign

    def _make(owner, title="Spring Launch", platform="facebook", type="post", **fields):
        campaign = Campaign(
            title=title,
            sales_person_id=owner.id,
            platform=platform,
            type=type,
            url=f"https://example.com/{title.lower().replace(' ', '-')}",
            status="active",
            **fields,
        )
        db_session.add(campaign)
        db_session.commit()
        db_session.refresh(campaign)
        return campaign

    return _make


@pytest.fixture()
def make_order(db_session):
    from commissiondesk import crud

    def _make(campaign, items=None, created_at=None):
        order = crud.create_order(
            db_session,
            campaign,
            items or [{"name": "Widget", "quantity": 1, "base_price": "100.00"}],
        )
        if created_at is not None:
            order.created_at = created_at
            db_session.commit()
            db_session.refresh(order)
        return order

    return _make


@pytest.fixture()
def client_as(db_session):
    """Return a factory producing a TestClient authenticated as the given user."""
    from commissiondesk.database import get_session
    from commissiondesk.dependencies import get_current_user
    from commissiondesk.main import app

    def override_session():
        try:
            yield db_session
        finally:
            db_session.rollback()

    def _client(user):
        app.dependency_overrides[get_session] = override_session
        app.dependency_overrides[get_current_user] = lambda: user
        return TestClient(app)

    yield _client

    app.dependency_overrides.pop(get_session, None)
    app.dependency_overrides.pop(get_current_user, None)
