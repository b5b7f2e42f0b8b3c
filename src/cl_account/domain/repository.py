"""Repository Protocol — dependency inversion for testability.

Every method takes the StoreTransaction of the running ledger operation;
writes are staged on it and committed by the caller.
"""

from typing import Protocol

from src.cl_account.domain.models import Account
from src.cl_store.domain.transaction import StoreTransaction


class AccountRepositoryProtocol(Protocol):
    async def get(self, tx: StoreTransaction, username: str) -> Account | None: ...

    async def add(self, tx: StoreTransaction, account: Account) -> None: ...

    def save(self, tx: StoreTransaction, account: Account) -> None: ...

    async def list_accounts(self, tx: StoreTransaction) -> list[Account]: ...
