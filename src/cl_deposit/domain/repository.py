"""Repository Protocol for deposit requests."""

from typing import Protocol

from src.cl_deposit.domain.models import DepositRequest
from src.cl_store.domain.transaction import StoreTransaction


class DepositRepositoryProtocol(Protocol):
    async def get(self, tx: StoreTransaction, request_id: str) -> DepositRequest | None: ...

    async def add(self, tx: StoreTransaction, request: DepositRequest) -> None: ...

    def save(self, tx: StoreTransaction, request: DepositRequest) -> None: ...

    async def list_requests(self, tx: StoreTransaction) -> list[DepositRequest]:
        """All requests, newest first."""
        ...
