import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("CLERK_JWT_ISSUER", "https://clerk.test")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.test/.well-known/jwks.json")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_kiosk_pop.db")
os.environ.setdefault("POP_PROVIDER_TAG", "optisigns")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from kiosk_pop.auth.dependencies import AuthContext, get_current_user  # noqa: E402
from kiosk_pop.db.base import Base, SessionLocal, init_db  # noqa: E402
from kiosk_pop.db.deps import get_session  # noqa: E402
from kiosk_pop.db.models import Org  # noqa: E402
from kiosk_pop.main import app  # noqa: E402

TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"
OTHER_ORG_ID = "00000000-0000-0000-0000-000000000002"
TEST_USER_ID = "user_test"


def _clear_tables(session) -> None:
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _clear_tables(session)
    session.add(Org(id=TEST_ORG_ID, external_id="org_clerk_test", name="Test Org"))
    session.add(Org(id=OTHER_ORG_ID, external_id="org_clerk_other", name="Other Org"))
    session.commit()
    try:
        yield session
    finally:
        session.rollback()
        _clear_tables(session)
        session.close()


@pytest.fixture()
def auth_context() -> AuthContext:
    return AuthContext(user_id=TEST_USER_ID, org_id=TEST_ORG_ID)


@pytest.fixture()
def override_session(db_session):
    def get_session_override():
        yield db_session

    app.dependency_overrides[get_session] = get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def override_dependencies(override_session, auth_context):
    def get_user_override():
        return auth_context

    app.dependency_overrides[get_current_user] = get_user_override
    yield


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def anonymous_client(override_session):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def org_id() -> str:
    return TEST_ORG_ID


@pytest.fixture()
def other_org_id() -> str:
    return OTHER_ORG_ID
