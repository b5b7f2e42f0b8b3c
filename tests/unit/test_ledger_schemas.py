"""Tests for ledger views and cursor utilities."""

from datetime import datetime, timezone
from decimal import Decimal

from fastapi.encoders import jsonable_encoder

from src.cl_account.domain.models import Account
from src.cl_common.enums import AccountRole, AccountStatus, TransactionType
from src.cl_ledger.application.schemas import (
    AccountView,
    BalanceChange,
    cursor_decode,
    cursor_encode,
)
from src.cl_ledger.domain.models import TransactionRecord

_NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_cursor_roundtrip() -> None:
    assert cursor_decode(cursor_encode("12345")) == "12345"


def test_cursor_none_and_garbage() -> None:
    assert cursor_decode(None) is None
    assert cursor_decode("!!!not-base64") is None
    assert cursor_decode(cursor_encode("abc")) is None


def test_account_view_hides_credential() -> None:
    account = Account(
        "alice", "$2b$hash", Decimal("1500"), AccountRole.USER, AccountStatus.APPROVED,
        _NOW, _NOW,
    )
    view = AccountView.from_account(account)
    assert "password_hash" not in view.model_dump()
    assert view.balance_display == "1,500.00"


def test_balance_change_json() -> None:
    account = Account(
        "alice", "h", Decimal("9.00"), AccountRole.USER, AccountStatus.APPROVED, _NOW, _NOW
    )
    record = TransactionRecord(
        "1", "alice", TransactionType.DEBIT, Decimal("1.00"), "Image Generation", _NOW
    )
    data = jsonable_encoder(BalanceChange.from_result(account, record))
    assert data["balance"] == "9.00"
    assert data["transaction"]["type"] == "debit"
    assert data["transaction"]["amount_display"] == "1.00"
