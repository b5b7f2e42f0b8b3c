"""Ledger invariant: every cached balance equals the signed sum of its records."""

import logging

from src.cl_account.domain.models import Account
from src.cl_ledger.domain.models import TransactionRecord
from src.cl_ledger.domain.transaction_log import signed_total

logger = logging.getLogger(__name__)


def check_balance(account: Account, records: list[TransactionRecord]) -> str | None:
    """Return a violation string, or None when the balance is justified by the log."""
    expected = signed_total(records)
    if account.balance == expected:
        return None
    msg = (
        f"balance drift for {account.username}: cached={account.balance} "
        f"ledger={expected} over {len(records)} record(s)"
    )
    logger.error(msg)
    return msg
