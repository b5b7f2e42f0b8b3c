"""Domain models for cl_deposit."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.cl_common.enums import DepositStatus


@dataclass
class DepositRequest:
    id: str
    username: str
    amount: Decimal            # immutable after creation
    timestamp: datetime
    status: DepositStatus = DepositStatus.PENDING
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == DepositStatus.PENDING
