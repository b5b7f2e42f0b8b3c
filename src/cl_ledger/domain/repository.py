"""Repository Protocol for the transaction log."""

from typing import Protocol

from src.cl_ledger.domain.models import TransactionRecord
from src.cl_store.domain.transaction import StoreTransaction


class TransactionRepositoryProtocol(Protocol):
    async def list_for_user(
        self, tx: StoreTransaction, username: str
    ) -> list[TransactionRecord]:
        """All records of one user, newest first."""
        ...

    async def prepend(self, tx: StoreTransaction, record: TransactionRecord) -> None: ...
