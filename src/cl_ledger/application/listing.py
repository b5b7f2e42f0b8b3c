"""Filtering and sorting for the admin list views.

Sorting is stable: equal keys keep storage order (registration order for
accounts, newest-first for deposit requests), in both directions.
"""

from src.cl_account.domain.models import Account
from src.cl_common.enums import (
    AccountSortKey,
    AccountStatus,
    DepositSortKey,
    DepositStatus,
    SortDirection,
)
from src.cl_deposit.domain.models import DepositRequest

_ACCOUNT_KEYS = {
    AccountSortKey.USERNAME: lambda a: a.username,
    AccountSortKey.STATUS: lambda a: a.status.value,
    AccountSortKey.BALANCE: lambda a: a.balance,
}

_DEPOSIT_KEYS = {
    DepositSortKey.USERNAME: lambda r: r.username,
    DepositSortKey.AMOUNT: lambda r: r.amount,
    DepositSortKey.TIMESTAMP: lambda r: r.timestamp,
}


def select_accounts(
    accounts: list[Account],
    status: AccountStatus | None,
    sort_by: AccountSortKey,
    direction: SortDirection,
) -> list[Account]:
    filtered = [a for a in accounts if status is None or a.status == status]
    return sorted(
        filtered,
        key=_ACCOUNT_KEYS[sort_by],
        reverse=direction == SortDirection.DESC,
    )


def select_deposits(
    requests: list[DepositRequest],
    status: DepositStatus | None,
    sort_by: DepositSortKey,
    direction: SortDirection,
) -> list[DepositRequest]:
    filtered = [r for r in requests if status is None or r.status == status]
    return sorted(
        filtered,
        key=_DEPOSIT_KEYS[sort_by],
        reverse=direction == SortDirection.DESC,
    )
