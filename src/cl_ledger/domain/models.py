"""Domain models for cl_ledger."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.cl_common.enums import TransactionType


@dataclass(frozen=True)
class TransactionRecord:
    id: str                    # snowflake, creation-ordered
    username: str
    type: TransactionType
    amount: Decimal            # always > 0; the sign lives in `type`
    description: str
    timestamp: datetime

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.CREDIT else -self.amount

