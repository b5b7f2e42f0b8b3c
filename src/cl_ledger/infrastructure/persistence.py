"""TransactionRepository — per-user append-only record lists in the store."""

from src.cl_common.datetime_utils import as_utc
from src.cl_ledger.domain.models import TransactionRecord
from src.cl_ledger.infrastructure.records import (
    TRANSACTION_LIST_KIND,
    TransactionRecordModel,
    transaction_list_adapter,
)
from src.cl_store.domain.envelope import unwrap, wrap
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.transaction import StoreTransaction


def _model_to_record(model: TransactionRecordModel) -> TransactionRecord:
    return TransactionRecord(
        id=model.id,
        username=model.username,
        type=model.type,
        amount=model.amount,
        description=model.description,
        timestamp=as_utc(model.timestamp),
    )


def _record_to_model(record: TransactionRecord) -> TransactionRecordModel:
    return TransactionRecordModel(
        id=record.id,
        username=record.username,
        type=record.type,
        amount=record.amount,
        description=record.description,
        timestamp=record.timestamp,
    )


class TransactionRepository:
    def __init__(self, keys: StoreKeys) -> None:
        self._keys = keys

    async def list_for_user(
        self, tx: StoreTransaction, username: str
    ) -> list[TransactionRecord]:
        return [_model_to_record(m) for m in await self._load(tx, username)]

    async def prepend(self, tx: StoreTransaction, record: TransactionRecord) -> None:
        models = await self._load(tx, record.username)
        models.insert(0, _record_to_model(record))
        tx.stage(
            self._keys.transactions(record.username),
            wrap(TRANSACTION_LIST_KIND, models, transaction_list_adapter),
        )

    async def _load(
        self, tx: StoreTransaction, username: str
    ) -> list[TransactionRecordModel]:
        key = self._keys.transactions(username)
        raw = await tx.get(key)
        if raw is None:
            return []
        return unwrap(key, TRANSACTION_LIST_KIND, raw, transaction_list_adapter)
