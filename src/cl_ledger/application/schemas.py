"""Pydantic views returned by LedgerService, and cursor utilities."""

import base64
import json
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from src.cl_account.domain.models import Account
from src.cl_common.credits import credits_to_display
from src.cl_common.enums import AccountRole, AccountStatus, DepositStatus, TransactionType
from src.cl_deposit.domain.models import DepositRequest
from src.cl_ledger.domain.models import TransactionRecord

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode a record id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        last_id = str(payload["id"])
    except Exception:
        return None
    return last_id if last_id.isdigit() else None


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class AccountView(BaseModel):
    username: str
    balance: Decimal
    balance_display: str
    role: AccountRole
    status: AccountStatus
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            username=account.username,
            balance=account.balance,
            balance_display=credits_to_display(account.balance),
            role=account.role,
            status=account.status,
            created_at=account.created_at,
        )


class TransactionItem(BaseModel):
    id: str
    username: str
    type: TransactionType
    amount: Decimal
    amount_display: str
    description: str
    timestamp: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionItem":
        return cls(
            id=record.id,
            username=record.username,
            type=record.type,
            amount=record.amount,
            amount_display=credits_to_display(record.amount),
            description=record.description,
            timestamp=record.timestamp,
        )


class TransactionPageView(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class DepositRequestView(BaseModel):
    id: str
    username: str
    amount: Decimal
    amount_display: str
    timestamp: datetime
    status: DepositStatus
    resolved_at: datetime | None
    resolved_by: str | None

    @classmethod
    def from_request(cls, request: DepositRequest) -> "DepositRequestView":
        return cls(
            id=request.id,
            username=request.username,
            amount=request.amount,
            amount_display=credits_to_display(request.amount),
            timestamp=request.timestamp,
            status=request.status,
            resolved_at=request.resolved_at,
            resolved_by=request.resolved_by,
        )


class BalanceChange(BaseModel):
    """Outcome of one mutate_balance: the new balance and the record justifying it."""

    username: str
    balance: Decimal
    balance_display: str
    transaction: TransactionItem

    @classmethod
    def from_result(cls, account: Account, record: TransactionRecord) -> "BalanceChange":
        return cls(
            username=account.username,
            balance=account.balance,
            balance_display=credits_to_display(account.balance),
            transaction=TransactionItem.from_record(record),
        )


class DepositResolution(BaseModel):
    request: DepositRequestView
    balance_change: BalanceChange | None = None


class InvariantReport(BaseModel):
    ok: bool
    checked_accounts: int
    violations: list[str]
