"""
Shared fixtures for route tests.

Authentication is replaced with a fixed user via dependency_overrides; the
service layer is patched per test.
"""

import pytest
from fastapi.testclient import TestClient

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.main import app
from backend.schemas.sharing import UserSharingContext

TEST_USER_ID = "doula-ana"


async def mock_authenticated_user_dependency():
    """Mock dependency that returns a fixed authenticated user."""
    return AuthenticatedUser(user_id=TEST_USER_ID, access_token="test-access-token")


@pytest.fixture
def client():
    """Create test client for FastAPI app."""
    return TestClient(app)


@pytest.fixture
def mock_auth():
    """Override get_authenticated_user for the duration of a test."""
    app.dependency_overrides[get_authenticated_user] = mock_authenticated_user_dependency

    yield

    app.dependency_overrides.clear()


@pytest.fixture
def admin_context():
    return UserSharingContext(
        user_id=TEST_USER_ID,
        role_id="role-admin",
        organization_id="practice-1",
        hierarchy_level=0,
        is_admin=True,
    )


@pytest.fixture
def member_context():
    return UserSharingContext(
        user_id=TEST_USER_ID,
        role_id="role-doula",
        organization_id="practice-1",
        hierarchy_level=2,
        is_admin=False,
    )
