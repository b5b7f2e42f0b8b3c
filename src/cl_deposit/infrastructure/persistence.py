"""DepositRepository — one key per request plus a newest-first id index."""

from src.cl_common.datetime_utils import as_utc
from src.cl_deposit.domain.models import DepositRequest
from src.cl_deposit.infrastructure.records import (
    DEPOSIT_INDEX_KIND,
    DEPOSIT_KIND,
    DepositRequestRecord,
    deposit_adapter,
    deposit_index_adapter,
)
from src.cl_store.domain.envelope import unwrap, wrap
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.transaction import StoreTransaction


def _record_to_request(record: DepositRequestRecord) -> DepositRequest:
    return DepositRequest(
        id=record.id,
        username=record.username,
        amount=record.amount,
        timestamp=as_utc(record.timestamp),
        status=record.status,
        resolved_at=as_utc(record.resolved_at) if record.resolved_at else None,
        resolved_by=record.resolved_by,
    )


def _request_to_record(request: DepositRequest) -> DepositRequestRecord:
    return DepositRequestRecord(
        id=request.id,
        username=request.username,
        amount=request.amount,
        timestamp=request.timestamp,
        status=request.status,
        resolved_at=request.resolved_at,
        resolved_by=request.resolved_by,
    )


class DepositRepository:
    def __init__(self, keys: StoreKeys) -> None:
        self._keys = keys

    async def get(self, tx: StoreTransaction, request_id: str) -> DepositRequest | None:
        key = self._keys.deposit(request_id)
        raw = await tx.get(key)
        if raw is None:
            return None
        return _record_to_request(unwrap(key, DEPOSIT_KIND, raw, deposit_adapter))

    async def add(self, tx: StoreTransaction, request: DepositRequest) -> None:
        ids = await self._ids(tx)
        ids.insert(0, request.id)
        tx.stage(
            self._keys.deposit_index,
            wrap(DEPOSIT_INDEX_KIND, ids, deposit_index_adapter),
        )
        self.save(tx, request)

    def save(self, tx: StoreTransaction, request: DepositRequest) -> None:
        tx.stage(
            self._keys.deposit(request.id),
            wrap(DEPOSIT_KIND, _request_to_record(request), deposit_adapter),
        )

    async def list_requests(self, tx: StoreTransaction) -> list[DepositRequest]:
        keys = [self._keys.deposit(i) for i in await self._ids(tx)]
        raws = await tx.get_many(keys)
        return [
            _record_to_request(unwrap(k, DEPOSIT_KIND, raws[k], deposit_adapter))
            for k in keys
            if k in raws
        ]

    async def _ids(self, tx: StoreTransaction) -> list[str]:
        key = self._keys.deposit_index
        raw = await tx.get(key)
        if raw is None:
            return []
        return unwrap(key, DEPOSIT_INDEX_KIND, raw, deposit_index_adapter)
