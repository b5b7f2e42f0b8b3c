"""InMemoryKeyValueStore — dict-backed store for tests and local development.

Values are round-tripped through JSON on every write so callers can never
mutate stored state through a shared reference, and non-serializable values
fail the same way they would against a real backend.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from src.cl_common.errors import StoreConflictError
from src.cl_store.infrastructure.json_codec import decode_json, encode_json


class InMemoryKeyValueStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._live_raw(key)
        return decode_json(key, raw) if raw is not None else None

    async def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        found = {k: self._live_raw(k) for k in keys}
        return {k: decode_json(k, raw) for k, raw in found.items() if raw is not None}

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raw = encode_json(key, value)
        self._sweep()
        self._data[key] = raw
        if ttl_seconds is None:
            self._expires_at.pop(key, None)
        else:
            self._expires_at[key] = self._clock() + ttl_seconds

    async def set_many(
        self,
        items: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        # Serialize everything first so a bad value leaves the store untouched
        encoded = {k: encode_json(k, v) for k, v in items.items()}
        # No await between the check and the update: atomic on the event loop
        for key, value in (expected or {}).items():
            raw = self._live_raw(key)
            current = decode_json(key, raw) if raw is not None else None
            if current != value:
                raise StoreConflictError(f"{key} changed since it was read")
        self._data.update(encoded)
        for key in encoded:
            self._expires_at.pop(key, None)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires_at.pop(key, None)

    async def close(self) -> None:
        return None

    def keys(self) -> list[str]:
        self._sweep()
        return list(self._data)

    def put_raw(self, key: str, raw: str) -> None:
        """Store a raw JSON string as-is (used to seed legacy/corrupt records)."""
        self._data[key] = raw

    def _live_raw(self, key: str) -> str | None:
        deadline = self._expires_at.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            del self._expires_at[key]
        return self._data.get(key)

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, deadline in self._expires_at.items() if deadline <= now]:
            self._data.pop(key, None)
            del self._expires_at[key]
