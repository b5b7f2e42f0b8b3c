"""Shared test fixtures.

Settings are read at import time, so the environment is prepared before any
application module is imported.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-do-not-use-in-production")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402

from src.cl_ledger.application.service import LedgerPolicy, LedgerService  # noqa: E402
from src.cl_store.infrastructure.memory_store import InMemoryKeyValueStore  # noqa: E402


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
async def ledger(store: InMemoryKeyValueStore) -> LedgerService:
    """LedgerService over an empty in-memory store, administrator seeded."""
    service = LedgerService(store, LedgerPolicy())
    result = await service.ensure_admin_account()
    assert result.success
    return service
