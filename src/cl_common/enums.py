"""Global enums — values are persisted in the store, never rename them."""

from enum import Enum


class AccountRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    BLOCKED = "blocked"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class DepositStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class AccountSortKey(str, Enum):
    USERNAME = "username"
    STATUS = "status"
    BALANCE = "balance"


class DepositSortKey(str, Enum):
    USERNAME = "username"
    AMOUNT = "amount"
    TIMESTAMP = "timestamp"
