import os

# Must be set before petsoft.config is first read (settings are cached)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PETSOFT_ACTION_DELAY_SECONDS"] = "0"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["SESSION_SECRET"] = "test-session-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from petsoft.database import get_session  # noqa: E402
from petsoft.main import app  # noqa: E402
from petsoft.services.auth_service import CallerIdentity, sign_up  # noqa: E402
from petsoft.services.pet_list_cache import get_pet_list_cache  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# One shared in-memory database for every session in a test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Sessions bound to the shared in-memory engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Fresh user and pet tables and an empty list cache for each test"""
    from petsoft.models.pet import Pet  # noqa: F401
    from petsoft.models.user import User  # noqa: F401

    SQLModel.metadata.create_all(test_engine)
    get_pet_list_cache().clear()

    with Session(test_engine) as session:
        yield session

    get_pet_list_cache().clear()
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """App client whose requests read and write the test database"""
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_client(client: TestClient):
    """Factory for extra clients, one per simulated browser (own cookie jar)"""
    extra = []

    def _make() -> TestClient:
        c = TestClient(app)
        extra.append(c)
        return c

    yield _make

    for c in extra:
        c.close()


@pytest.fixture
def owner(session: Session) -> CallerIdentity:
    user = sign_up(session, email="owner@example.com", password="owner-pass")
    return CallerIdentity(user_id=user.id, email=user.email)


@pytest.fixture
def stranger(session: Session) -> CallerIdentity:
    user = sign_up(session, email="stranger@example.com", password="stranger-pass")
    return CallerIdentity(user_id=user.id, email=user.email)
