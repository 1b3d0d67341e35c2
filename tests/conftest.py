import os
from datetime import datetime, timedelta, timezone

# 1. Set required environment variables for testing (before config is imported)
os.environ["PROJECT_ID"] = ""
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STRIPE_API_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_PREMIUM_PRICE_ID"] = "price_premium_monthly"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

# Import main AFTER setting up the environment
from main import app  # noqa: E402
from database import Base, get_db  # noqa: E402
from dependencies import get_current_user  # noqa: E402
from models import Subscription, User  # noqa: E402


@pytest.fixture
def db_session():
    """
    Creates a new in-memory database session for a test.
    """
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = {}


@pytest.fixture
def user(db_session):
    db_user = User(id="uid-123", email="test@example.com", subscription_tier="free")
    db_session.add(db_user)
    db_session.commit()
    return db_user


@pytest.fixture
def premium_user(db_session, user):
    user.stripe_customer_id = "cus_123"
    db_session.add(Subscription(
        id="sub_123",
        user_id=user.id,
        stripe_customer_id="cus_123",
        status="active",
        price_id="price_premium_monthly",
        current_period_end=datetime.now(timezone.utc) + timedelta(days=20),
    ))
    db_session.commit()
    return user


@pytest.fixture
def mock_auth_user(client, user):
    """
    Overrides the get_current_user dependency to bypass auth.
    """
    app.dependency_overrides[get_current_user] = lambda: user
    yield user
    app.dependency_overrides.pop(get_current_user, None)
