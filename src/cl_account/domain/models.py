"""Domain models for cl_account — pure dataclasses, no store dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.cl_common.enums import AccountRole, AccountStatus


@dataclass
class Account:
    username: str
    password_hash: str
    balance: Decimal           # cached projection of the transaction log
    role: AccountRole
    status: AccountStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN
