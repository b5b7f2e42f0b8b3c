"""DepositRequestQueue — user-submitted claims of off-band payments.

A request moves pending -> approved or pending -> rejected exactly once.
The queue only records the decision; crediting the balance on approval is
LedgerService's job, done in the same store transaction.
"""

import logging
from decimal import Decimal

from src.cl_common.credits import require_positive
from src.cl_common.datetime_utils import utc_now
from src.cl_common.enums import DepositStatus
from src.cl_common.errors import (
    DepositAlreadyResolvedError,
    DepositRequestNotFoundError,
    InvalidTransitionError,
)
from src.cl_common.id_generator import SnowflakeIdGenerator
from src.cl_deposit.domain.models import DepositRequest
from src.cl_deposit.domain.repository import DepositRepositoryProtocol
from src.cl_store.domain.transaction import StoreTransaction

logger = logging.getLogger(__name__)


class DepositRequestQueue:
    def __init__(
        self,
        repo: DepositRepositoryProtocol,
        id_generator: SnowflakeIdGenerator,
    ) -> None:
        self._repo = repo
        self._ids = id_generator

    async def submit(
        self, tx: StoreTransaction, username: str, amount: Decimal
    ) -> DepositRequest:
        """Create a pending request. Raises InvalidAmountError if amount <= 0."""
        request = DepositRequest(
            id=self._ids.next_id(),
            username=username,
            amount=require_positive(amount),
            timestamp=utc_now(),
        )
        await self._repo.add(tx, request)
        logger.info(
            "Deposit request submitted: id=%s username=%s amount=%s",
            request.id, username, request.amount,
        )
        return request

    async def resolve(
        self,
        tx: StoreTransaction,
        request_id: str,
        outcome: DepositStatus,
        resolved_by: str,
    ) -> DepositRequest:
        """Move a pending request to approved or rejected.

        Raises DepositRequestNotFoundError, or DepositAlreadyResolvedError when
        the request has already left pending. The caller must hold the
        request's lock.
        """
        if outcome == DepositStatus.PENDING:
            raise InvalidTransitionError("A deposit request cannot be moved back to pending")
        request = await self.require(tx, request_id)
        if not request.is_pending:
            raise DepositAlreadyResolvedError(request_id, request.status.value)
        request.status = outcome
        request.resolved_at = utc_now()
        request.resolved_by = resolved_by
        self._repo.save(tx, request)
        return request

    async def require(self, tx: StoreTransaction, request_id: str) -> DepositRequest:
        request = await self._repo.get(tx, request_id)
        if request is None:
            raise DepositRequestNotFoundError(request_id)
        return request

    async def list_requests(self, tx: StoreTransaction) -> list[DepositRequest]:
        return await self._repo.list_requests(tx)
