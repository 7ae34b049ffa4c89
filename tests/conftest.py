"""
Pytest configuration for the Doula CRM backend tests.

Sets up test environment and global fixtures.
"""
import os

import pytest
from unittest.mock import MagicMock

# Disable config validation during tests
# This allows tests to run without requiring real environment variables
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
os.environ["DEFAULT_SHARING_MODEL"] = "private"

from backend.schemas.sharing import RecordContext, UserContext  # noqa: E402

@pytest.fixture
def supabase_client():
    """
    Mock Supabase client for testing services.
    Returns a MagicMock that simulates Supabase client behavior.
    """
    mock_client = MagicMock()
    return mock_client

@pytest.fixture
def record_context():
    """A Contact owned by doula-ana in practice-1."""
    return RecordContext(
        record_id="contact-1",
        object_api_name="Contact",
        owner_id="doula-ana",
        organization_id="practice-1",
        field_values={"status": "active", "amount": 50, "city": "Portland"},
    )

@pytest.fixture
def user_context():
    """doula-bea, a backup doula in practice-1 (not the owner)."""
    return UserContext(
        user_id="doula-bea",
        role_id="role-backup",
        organization_id="practice-1",
        hierarchy_level=3,
    )
