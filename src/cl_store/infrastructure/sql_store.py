"""SqlKeyValueStore — KeyValueStore over a single kv_entries table.

Values are stored as JSON text. `set_many` writes every key inside one
database transaction, which is what makes a ledger operation atomic on this
backend. Expected values are checked in that same transaction: existing rows
are locked with SELECT ... FOR UPDATE and keys expected to be absent are
inserted with ON CONFLICT DO NOTHING, so a second writer from another process
sees the first one's commit and fails with StoreConflictError.

Rows written with a TTL carry `expires_at`; reads skip expired rows and every
TTL write sweeps them. Any SQLAlchemy error is reported as StoreFailureError.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.cl_common.database import build_engine, build_session_factory
from src.cl_common.errors import StoreConflictError, StoreFailureError
from src.cl_store.infrastructure.json_codec import decode_json, encode_json

logger = logging.getLogger(__name__)

_LIVE = "(expires_at IS NULL OR expires_at > CURRENT_TIMESTAMP)"

_GET_SQL = text(f"SELECT key, value FROM kv_entries WHERE key = :key AND {_LIVE}")

_GET_MANY_SQL = text(
    f"SELECT key, value FROM kv_entries WHERE key IN :keys AND {_LIVE}"
).bindparams(bindparam("keys", expanding=True))

# Sorted so two writers lock shared rows in the same order
_LOCK_SQL = text(
    f"SELECT key, value FROM kv_entries WHERE key IN :keys AND {_LIVE} "
    "ORDER BY key FOR UPDATE"
).bindparams(bindparam("keys", expanding=True))

_UPSERT_SQL = text("""
    INSERT INTO kv_entries (key, value, updated_at, expires_at)
    VALUES (:key, :value, CURRENT_TIMESTAMP, NULL)
    ON CONFLICT (key) DO UPDATE
        SET value = excluded.value,
            updated_at = CURRENT_TIMESTAMP,
            expires_at = NULL
""")

# Returns no row when a live entry already exists
_INSERT_NEW_SQL = text("""
    INSERT INTO kv_entries (key, value, updated_at, expires_at)
    VALUES (:key, :value, CURRENT_TIMESTAMP, NULL)
    ON CONFLICT (key) DO UPDATE
        SET value = excluded.value,
            updated_at = CURRENT_TIMESTAMP,
            expires_at = NULL
        WHERE kv_entries.expires_at IS NOT NULL
          AND kv_entries.expires_at <= CURRENT_TIMESTAMP
    RETURNING key
""")

_UPSERT_TTL_SQL = text("""
    INSERT INTO kv_entries (key, value, updated_at, expires_at)
    VALUES (:key, :value, CURRENT_TIMESTAMP,
            CURRENT_TIMESTAMP + make_interval(secs => :ttl))
    ON CONFLICT (key) DO UPDATE
        SET value = excluded.value,
            updated_at = CURRENT_TIMESTAMP,
            expires_at = excluded.expires_at
""")

_SWEEP_SQL = text("DELETE FROM kv_entries WHERE expires_at <= CURRENT_TIMESTAMP")

_DELETE_SQL = text("DELETE FROM kv_entries WHERE key = :key")


class SqlKeyValueStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlKeyValueStore":
        engine = build_engine(database_url, echo=echo)
        return cls(build_session_factory(engine), engine)

    async def get(self, key: str) -> Any | None:
        try:
            async with self._session_factory() as db:
                row = (await db.execute(_GET_SQL, {"key": key})).fetchone()
        except SQLAlchemyError as exc:
            logger.error("kv get failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"read of {key} failed") from exc
        return decode_json(row.key, row.value) if row else None

    async def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        if not keys:
            return {}
        try:
            async with self._session_factory() as db:
                rows = (await db.execute(_GET_MANY_SQL, {"keys": list(keys)})).fetchall()
        except SQLAlchemyError as exc:
            logger.error("kv get_many failed: %d keys error=%s", len(keys), exc)
            raise StoreFailureError("batch read failed") from exc
        return {row.key: decode_json(row.key, row.value) for row in rows}

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        if ttl_seconds is None:
            await self.set_many({key: value})
            return
        params = {"key": key, "value": encode_json(key, value), "ttl": float(ttl_seconds)}
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    await db.execute(_SWEEP_SQL)
                    await db.execute(_UPSERT_TTL_SQL, params)
        except SQLAlchemyError as exc:
            logger.error("kv write failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"write of {key} failed") from exc

    async def set_many(
        self,
        items: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        if not items:
            return
        encoded = {k: encode_json(k, v) for k, v in items.items()}
        expected = dict(expected or {})
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    if expected:
                        await self._check_expected(db, expected)
                    for key, value in encoded.items():
                        params = {"key": key, "value": value}
                        if key in expected and expected[key] is None:
                            row = (await db.execute(_INSERT_NEW_SQL, params)).fetchone()
                            if row is None:
                                raise StoreConflictError(f"{key} was created concurrently")
                        else:
                            await db.execute(_UPSERT_SQL, params)
        except SQLAlchemyError as exc:
            logger.error("kv write failed: keys=%s error=%s", list(items), exc)
            raise StoreFailureError("write failed") from exc

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    await db.execute(_DELETE_SQL, {"key": key})
        except SQLAlchemyError as exc:
            logger.error("kv delete failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"delete of {key} failed") from exc

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    @staticmethod
    async def _check_expected(db: AsyncSession, expected: Mapping[str, Any]) -> None:
        """Lock the expected rows and compare them; raises StoreConflictError."""
        rows = (await db.execute(_LOCK_SQL, {"keys": sorted(expected)})).fetchall()
        current = {row.key: decode_json(row.key, row.value) for row in rows}
        for key, value in expected.items():
            if current.get(key) != value:
                logger.warning("kv conflict: key=%s changed since it was read", key)
                raise StoreConflictError(f"{key} changed since it was read")
