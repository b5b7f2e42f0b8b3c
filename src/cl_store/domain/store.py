"""KeyValueStore Protocol — the only persistence contract the ledger depends on.

Values are JSON-serializable (dict/list/str/int/bool/None). Backends live in
src.cl_store.infrastructure; unit tests use InMemoryKeyValueStore.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        """Return the values for the keys that exist; missing keys are omitted."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Write one key. With `ttl_seconds` the key disappears once it elapses."""
        ...

    async def set_many(
        self,
        items: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        """Write all items atomically: either every key is written or none is.

        `expected` maps keys to the value the caller last read (None: absent).
        If any of them holds something else when the write is applied, nothing
        is written and StoreConflictError is raised. The check and the write
        are one atomic step on every backend, across processes.
        """
        ...

    async def delete(self, key: str) -> None: ...

    async def close(self) -> None: ...
