"""Shared pytest fixtures."""

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from dcf_app.main import app
from dcf_app.models.base import get_async_session


async def _fake_session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client() -> Iterator[TestClient]:
    """TestClient with the database session replaced by a mock.

    Endpoint tests patch the CRUD/service functions they exercise; the
    lifespan (table creation) is not run.
    """
    app.dependency_overrides[get_async_session] = _fake_session
    yield TestClient(app)
    app.dependency_overrides.clear()
