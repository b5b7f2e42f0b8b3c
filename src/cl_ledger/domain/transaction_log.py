"""TransactionLog — append-only balance-change records.

The log is the source of truth for balances: Account.balance is a cached
projection that must always equal `signed_total(query(username))`.
"""

from decimal import Decimal

from src.cl_common.datetime_utils import utc_now
from src.cl_common.enums import TransactionType
from src.cl_common.errors import InvalidAmountError
from src.cl_common.id_generator import SnowflakeIdGenerator
from src.cl_ledger.domain.models import TransactionRecord
from src.cl_ledger.domain.repository import TransactionRepositoryProtocol
from src.cl_store.domain.transaction import StoreTransaction


class TransactionLog:
    def __init__(
        self,
        repo: TransactionRepositoryProtocol,
        id_generator: SnowflakeIdGenerator,
    ) -> None:
        self._repo = repo
        self._ids = id_generator

    async def append(
        self,
        tx: StoreTransaction,
        username: str,
        type_: TransactionType,
        amount: Decimal,
        description: str,
    ) -> TransactionRecord:
        if amount <= 0:
            raise InvalidAmountError("Transaction amount must be positive.")
        record = TransactionRecord(
            id=self._ids.next_id(),
            username=username,
            type=type_,
            amount=amount,
            description=description,
            timestamp=utc_now(),
        )
        await self._repo.prepend(tx, record)
        return record

    async def query(self, tx: StoreTransaction, username: str) -> list[TransactionRecord]:
        """All records for one user, newest first."""
        return await self._repo.list_for_user(tx, username)


def signed_total(records: list[TransactionRecord]) -> Decimal:
    """Sum of credits minus sum of debits."""
    return sum((r.signed_amount for r in records), Decimal("0"))
