"""Per-key asyncio locks for ledger operations.

Every mutating operation names the keys it touches (an account, a deposit
request, an index) and holds their locks for its whole read-check-write
cycle. Locks are always taken in sorted order, so two operations can never
wait on each other.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

ACCOUNT_INDEX_LOCK = "index:accounts"
DEPOSIT_INDEX_LOCK = "index:deposits"


def account_lock(username: str) -> str:
    return f"account:{username}"


def deposit_lock(request_id: str) -> str:
    return f"deposit:{request_id}"


class LockRegistry:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, *names: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for name in sorted(set(names)):
                await stack.enter_async_context(self._locks[name])
            yield
