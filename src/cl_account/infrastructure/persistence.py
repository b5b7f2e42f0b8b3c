"""AccountRepository — concrete implementation of AccountRepositoryProtocol.

Accounts live one per key; `account_index` keeps usernames in registration
order, which is the tie-break order of every account listing.

Transaction ownership: the CALLER opens the StoreTransaction, holds the
relevant locks and commits.
"""

from src.cl_account.domain.models import Account
from src.cl_account.infrastructure.records import (
    ACCOUNT_INDEX_KIND,
    ACCOUNT_KIND,
    AccountRecord,
    account_adapter,
    account_index_adapter,
)
from src.cl_common.datetime_utils import as_utc
from src.cl_store.domain.envelope import unwrap, wrap
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.transaction import StoreTransaction


def _record_to_account(record: AccountRecord) -> Account:
    return Account(
        username=record.username,
        password_hash=record.password_hash,
        balance=record.balance,
        role=record.role,
        status=record.status,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def _account_to_record(account: Account) -> AccountRecord:
    return AccountRecord(
        username=account.username,
        password_hash=account.password_hash,
        balance=account.balance,
        role=account.role,
        status=account.status,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


class AccountRepository:
    def __init__(self, keys: StoreKeys) -> None:
        self._keys = keys

    async def get(self, tx: StoreTransaction, username: str) -> Account | None:
        key = self._keys.account(username)
        raw = await tx.get(key)
        if raw is None:
            return None
        return _record_to_account(unwrap(key, ACCOUNT_KIND, raw, account_adapter))

    async def add(self, tx: StoreTransaction, account: Account) -> None:
        usernames = await self._usernames(tx)
        usernames.append(account.username)
        tx.stage(
            self._keys.account_index,
            wrap(ACCOUNT_INDEX_KIND, usernames, account_index_adapter),
        )
        self.save(tx, account)

    def save(self, tx: StoreTransaction, account: Account) -> None:
        tx.stage(
            self._keys.account(account.username),
            wrap(ACCOUNT_KIND, _account_to_record(account), account_adapter),
        )

    async def list_accounts(self, tx: StoreTransaction) -> list[Account]:
        usernames = await self._usernames(tx)
        keys = [self._keys.account(u) for u in usernames]
        raws = await tx.get_many(keys)
        return [
            _record_to_account(unwrap(k, ACCOUNT_KIND, raws[k], account_adapter))
            for k in keys
            if k in raws
        ]

    async def _usernames(self, tx: StoreTransaction) -> list[str]:
        key = self._keys.account_index
        raw = await tx.get(key)
        if raw is None:
            return []
        return unwrap(key, ACCOUNT_INDEX_KIND, raw, account_index_adapter)
