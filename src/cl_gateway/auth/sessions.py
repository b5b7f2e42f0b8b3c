"""SessionRegistry — server-side login sessions in the KeyValueStore.

One session per login, keyed by the JWT `jti`. Logout deletes it; tokens
whose session is gone or expired are rejected. Sessions are written with the
store TTL, so abandoned ones are dropped by the backend without a read.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, TypeAdapter

from src.cl_common.datetime_utils import as_utc, utc_now
from src.cl_store.domain.envelope import unwrap, wrap
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.store import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KIND = "session"


class SessionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str
    username: str
    created_at: datetime
    expires_at: datetime


session_adapter = TypeAdapter(SessionRecord)


@dataclass(frozen=True)
class Session:
    session_id: str
    username: str
    created_at: datetime
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return utc_now() >= self.expires_at


class SessionRegistry:
    def __init__(self, store: KeyValueStore, keys: StoreKeys, ttl: timedelta) -> None:
        self._store = store
        self._keys = keys
        self._ttl = ttl

    async def open(self, username: str) -> Session:
        now = utc_now()
        session = Session(
            session_id=uuid.uuid4().hex,
            username=username,
            created_at=now,
            expires_at=now + self._ttl,
        )
        record = SessionRecord(**session.__dict__)
        await self._store.set(
            self._keys.session(session.session_id),
            wrap(SESSION_KIND, record, session_adapter),
            ttl_seconds=max(1, int(self._ttl.total_seconds())),
        )
        logger.info("Session opened: username=%s", username)
        return session

    async def get(self, session_id: str) -> Session | None:
        """Return the live session, or None if it is unknown or expired."""
        key = self._keys.session(session_id)
        raw = await self._store.get(key)
        if raw is None:
            return None
        record = unwrap(key, SESSION_KIND, raw, session_adapter)
        session = Session(
            session_id=record.session_id,
            username=record.username,
            created_at=as_utc(record.created_at),
            expires_at=as_utc(record.expires_at),
        )
        if session.is_expired:
            await self._store.delete(key)
            return None
        return session

    async def close(self, session_id: str) -> None:
        await self._store.delete(self._keys.session(session_id))
        logger.info("Session closed: %s", session_id)
