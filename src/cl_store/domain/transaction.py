"""StoreTransaction — read-through, write-behind view over a KeyValueStore.

Repositories read and stage writes through a StoreTransaction the way they
would use an AsyncSession. Nothing reaches the store until `commit()`, which
hands every staged key to `set_many` in one call. A transaction that is never
committed leaves the store untouched.

Every staged key that was read first is sent to `set_many` as `expected`
with the value seen at read time, so the commit fails with
StoreConflictError if another writer (another worker process, say) changed
it in between. Keys that are only read are not checked.
"""

import copy
from collections.abc import Sequence
from typing import Any

from src.cl_store.domain.store import KeyValueStore


class StoreTransaction:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._staged: dict[str, Any] = {}
        self._seen: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        if key in self._staged:
            return self._staged[key]
        value = await self._store.get(key)
        self._remember(key, value)
        return value

    async def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        missing = [k for k in keys if k not in self._staged]
        found = await self._store.get_many(missing) if missing else {}
        for k in missing:
            self._remember(k, found.get(k))
        found.update({k: self._staged[k] for k in keys if k in self._staged})
        return found

    def stage(self, key: str, value: Any) -> None:
        self._staged[key] = value

    @property
    def staged_keys(self) -> list[str]:
        return list(self._staged)

    async def commit(self) -> None:
        if self._staged:
            expected = {k: v for k, v in self._seen.items() if k in self._staged}
            await self._store.set_many(self._staged, expected=expected)
            self._staged = {}

    def _remember(self, key: str, value: Any) -> None:
        # Callers may mutate what they read; keep our own copy
        if key not in self._seen:
            self._seen[key] = copy.deepcopy(value)
