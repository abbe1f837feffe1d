import os

# Must be set before the application (and its session manager) is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CREATE_TABLES"] = "true"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from marksheet.main import app  # noqa: E402


@pytest.fixture
def client():
    # Entering the client runs the lifespan, which creates a fresh in-memory database
    with TestClient(app) as test_client:
        yield test_client
