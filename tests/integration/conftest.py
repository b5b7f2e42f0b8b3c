"""Integration-test fixtures.

Each test gets a fresh app over its own InMemoryKeyValueStore. ASGITransport
does not run the lifespan, so the administrator is seeded explicitly.
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.cl_store.infrastructure.memory_store import InMemoryKeyValueStore
from src.main import create_app
from tests.helpers import ADMIN, ADMIN_PASSWORD, login


@pytest.fixture
async def app() -> FastAPI:
    application = create_app(InMemoryKeyValueStore())
    assert (await application.state.ledger.ensure_admin_account()).success
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    return await login(client, ADMIN, ADMIN_PASSWORD)
