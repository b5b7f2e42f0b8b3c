"""LedgerService — the only component with cross-entity invariants.

Orchestrates AccountDirectory, TransactionLog and DepositRequestQueue over one
injected KeyValueStore. Every mutating operation runs in `_transaction(...)`:
it holds the per-key locks of everything it touches, stages its writes on a
StoreTransaction and commits them with a single `set_many`. If any step
raises, nothing is committed. The locks serialize operations inside one
process; across processes the commit itself checks that every key it
overwrites still holds what was read, and fails with StoreConflictError
otherwise.

Public operations never raise for business-rule violations; `returns_result`
turns AppError into a failed OperationResult.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal

from config.settings import Settings
from src.cl_account.domain.directory import AccountDirectory
from src.cl_account.domain.models import Account
from src.cl_account.infrastructure.persistence import AccountRepository
from src.cl_common.credits import require_positive, to_credits
from src.cl_common.datetime_utils import utc_now
from src.cl_common.enums import (
    AccountSortKey,
    AccountStatus,
    DepositSortKey,
    DepositStatus,
    SortDirection,
    TransactionType,
)
from src.cl_common.errors import (
    AccountBlockedError,
    InsufficientBalanceError,
    InvalidAmountError,
    PendingApprovalError,
    StoreConflictError,
    StoreFailureError,
)
from src.cl_common.id_generator import SnowflakeIdGenerator, id_sort_key
from src.cl_common.response import returns_result
from src.cl_deposit.domain.queue import DepositRequestQueue
from src.cl_deposit.infrastructure.persistence import DepositRepository
from src.cl_ledger.application.listing import select_accounts, select_deposits
from src.cl_ledger.application.locks import (
    ACCOUNT_INDEX_LOCK,
    DEPOSIT_INDEX_LOCK,
    LockRegistry,
    account_lock,
    deposit_lock,
)
from src.cl_ledger.application.schemas import (
    AccountView,
    BalanceChange,
    DepositRequestView,
    DepositResolution,
    InvariantReport,
    TransactionItem,
    TransactionPageView,
    cursor_decode,
    cursor_encode,
)
from src.cl_ledger.domain.invariants import check_balance
from src.cl_ledger.domain.models import TransactionRecord
from src.cl_ledger.domain.transaction_log import TransactionLog
from src.cl_ledger.infrastructure.persistence import TransactionRepository
from src.cl_store.domain.keys import StoreKeys
from src.cl_store.domain.store import KeyValueStore
from src.cl_store.domain.transaction import StoreTransaction

logger = logging.getLogger(__name__)

WELCOME_BONUS_DESCRIPTION = "Account approved - Welcome bonus"
GENERATION_DESCRIPTION = "Image Generation"
ADMIN_CREDIT_DESCRIPTION = "Manual credit by admin"
DEPOSIT_DESCRIPTION = "Deposit approved by admin"
ADMIN_OPENING_DESCRIPTION = "Initial administrator balance"


@dataclass(frozen=True)
class LedgerPolicy:
    admin_username: str = "admin"
    admin_password: str = "admin"
    admin_initial_balance: Decimal = Decimal("9999.00")
    welcome_bonus: Decimal = Decimal("10.00")
    min_password_length: int = 4
    key_prefix: str = "app"

    @classmethod
    def from_settings(cls, cfg: Settings) -> "LedgerPolicy":
        return cls(
            admin_username=cfg.ADMIN_USERNAME,
            admin_password=cfg.ADMIN_PASSWORD,
            admin_initial_balance=to_credits(cfg.ADMIN_INITIAL_BALANCE),
            welcome_bonus=to_credits(cfg.WELCOME_BONUS),
            min_password_length=cfg.MIN_PASSWORD_LENGTH,
            key_prefix=cfg.STORE_KEY_PREFIX,
        )


class LedgerService:
    def __init__(
        self,
        store: KeyValueStore,
        policy: LedgerPolicy | None = None,
        id_generator: SnowflakeIdGenerator | None = None,
    ) -> None:
        self._store = store
        self._policy = policy or LedgerPolicy()
        ids = id_generator or SnowflakeIdGenerator()
        keys = StoreKeys(self._policy.key_prefix)
        self._directory = AccountDirectory(
            AccountRepository(keys),
            admin_username=self._policy.admin_username,
            min_password_length=self._policy.min_password_length,
        )
        self._log = TransactionLog(TransactionRepository(keys), ids)
        self._deposits = DepositRequestQueue(DepositRepository(keys), ids)
        self._locks = LockRegistry()

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, *lock_names: str) -> AsyncIterator[StoreTransaction]:
        async with self._locks.hold(*lock_names):
            tx = StoreTransaction(self._store)
            yield tx
            try:
                await tx.commit()
            except StoreConflictError:
                logger.warning("Commit lost a race with another writer: locks=%s", lock_names)
                raise

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[StoreTransaction]:
        yield StoreTransaction(self._store)

    async def _apply_delta(
        self,
        tx: StoreTransaction,
        account: Account,
        delta: Decimal,
        description: str,
    ) -> tuple[Account, TransactionRecord]:
        """Write balance and its transaction record together. Caller holds the account lock."""
        if delta == 0:
            raise InvalidAmountError("Amount must be non-zero.")
        type_ = TransactionType.CREDIT if delta > 0 else TransactionType.DEBIT
        record = await self._log.append(tx, account.username, type_, abs(delta), description)
        account.balance = account.balance + delta
        account.updated_at = utc_now()
        self._directory.save(tx, account)
        logger.info(
            "Balance mutated: username=%s delta=%s balance=%s record=%s (%s)",
            account.username, delta, account.balance, record.id, description,
        )
        return account, record

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    @returns_result("Administrator account ready")
    async def ensure_admin_account(self) -> AccountView:
        admin = self._policy.admin_username
        async with self._transaction(ACCOUNT_INDEX_LOCK, account_lock(admin)) as tx:
            account = await self._directory.create_admin(tx, self._policy.admin_password)
            if account is None:
                return AccountView.from_account(await self._directory.require(tx, admin))
            if self._policy.admin_initial_balance > 0:
                account, _ = await self._apply_delta(
                    tx, account, self._policy.admin_initial_balance, ADMIN_OPENING_DESCRIPTION
                )
            return AccountView.from_account(account)

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    @returns_result("Registration successful! Your account is now pending approval.")
    async def register(self, username: str, password: str) -> AccountView:
        async with self._transaction(ACCOUNT_INDEX_LOCK, account_lock(username)) as tx:
            account = await self._directory.register(tx, username, password)
            return AccountView.from_account(account)

    @returns_result("Login successful!")
    async def login(self, username: str, password: str) -> AccountView:
        async with self._read() as tx:
            account = await self._directory.login(tx, username, password)
            return AccountView.from_account(account)

    @returns_result("success")
    async def get_account(self, username: str) -> AccountView:
        async with self._read() as tx:
            return AccountView.from_account(await self._directory.require(tx, username))

    @returns_result("Balance updated")
    async def mutate_balance(
        self, username: str, delta: Decimal, description: str
    ) -> BalanceChange:
        """The single balance-mutation primitive, exposed for collaborators."""
        async with self._transaction(account_lock(username)) as tx:
            account = await self._directory.require(tx, username)
            account, record = await self._apply_delta(tx, account, to_credits(delta), description)
            return BalanceChange.from_result(account, record)

    @returns_result("Charge successful")
    async def charge_for_generation(self, username: str, cost: Decimal) -> BalanceChange:
        """Atomic check-then-deduct; concurrent charges on one account are serialized."""
        amount = require_positive(cost)
        async with self._transaction(account_lock(username)) as tx:
            account = await self._directory.require(tx, username)
            _require_active(account)
            if account.balance < amount:
                raise InsufficientBalanceError(amount, account.balance)
            account, record = await self._apply_delta(
                tx, account, -amount, GENERATION_DESCRIPTION
            )
            return BalanceChange.from_result(account, record)

    @returns_result(
        "Your deposit request has been submitted and is pending admin approval."
    )
    async def submit_deposit_request(
        self, username: str, amount: Decimal
    ) -> DepositRequestView:
        async with self._transaction(DEPOSIT_INDEX_LOCK) as tx:
            await self._directory.require(tx, username)
            request = await self._deposits.submit(tx, username, amount)
            return DepositRequestView.from_request(request)

    # ------------------------------------------------------------------
    # Admin operations: `actor` is the acting administrator's username
    # ------------------------------------------------------------------

    @returns_result("success")
    async def list_accounts(
        self,
        actor: str,
        status: AccountStatus | None = None,
        sort_by: AccountSortKey = AccountSortKey.USERNAME,
        direction: SortDirection = SortDirection.ASC,
    ) -> list[AccountView]:
        async with self._read() as tx:
            await self._directory.require_admin(tx, actor)
            try:
                accounts = await self._directory.list_accounts(tx)
            except StoreFailureError as exc:
                logger.error("Account list unavailable, showing empty view: %s", exc.message)
                return []
        users = [a for a in accounts if a.username != self._policy.admin_username]
        return [
            AccountView.from_account(a)
            for a in select_accounts(users, status, sort_by, direction)
        ]

    @returns_result("Account approved")
    async def approve_account(self, actor: str, username: str) -> AccountView:
        async with self._transaction(account_lock(username)) as tx:
            await self._directory.require_admin(tx, actor)
            account = await self._directory.approve(tx, username)
            account, _ = await self._apply_delta(
                tx, account, self._policy.welcome_bonus, WELCOME_BONUS_DESCRIPTION
            )
            logger.info("Account approved: username=%s by=%s", username, actor)
            return AccountView.from_account(account)

    @returns_result("Account status updated")
    async def set_account_status(
        self, actor: str, username: str, status: AccountStatus
    ) -> AccountView:
        async with self._transaction(account_lock(username)) as tx:
            await self._directory.require_admin(tx, actor)
            account = await self._directory.set_status(tx, username, AccountStatus(status))
            return AccountView.from_account(account)

    @returns_result("Balance updated")
    async def admin_adjust_balance(
        self, actor: str, username: str, delta: Decimal
    ) -> BalanceChange:
        """Unconditional admin credit/debit; no floor, the balance may go negative."""
        amount = to_credits(delta)
        async with self._transaction(account_lock(username)) as tx:
            await self._directory.require_admin(tx, actor)
            account = await self._directory.require(tx, username)
            account, record = await self._apply_delta(
                tx, account, amount, ADMIN_CREDIT_DESCRIPTION
            )
            return BalanceChange.from_result(account, record)

    @returns_result("success")
    async def list_deposit_requests(
        self,
        actor: str,
        status: DepositStatus | None = None,
        sort_by: DepositSortKey = DepositSortKey.TIMESTAMP,
        direction: SortDirection = SortDirection.DESC,
    ) -> list[DepositRequestView]:
        """`status=None` lists every request; the admin HTTP view defaults to pending."""
        async with self._read() as tx:
            await self._directory.require_admin(tx, actor)
            try:
                requests = await self._deposits.list_requests(tx)
            except StoreFailureError as exc:
                logger.error("Deposit list unavailable, showing empty view: %s", exc.message)
                return []
        return [
            DepositRequestView.from_request(r)
            for r in select_deposits(requests, status, sort_by, direction)
        ]

    @returns_result("Deposit request approved")
    async def approve_deposit(self, actor: str, request_id: str) -> DepositResolution:
        """Approve a pending request and credit its amount, atomically.

        The request's owner is looked up first so its account lock can be held
        together with the request lock; the owner never changes.
        """
        async with self._read() as tx:
            owner = (await self._deposits.require(tx, request_id)).username
        async with self._transaction(deposit_lock(request_id), account_lock(owner)) as tx:
            await self._directory.require_admin(tx, actor)
            request = await self._deposits.resolve(tx, request_id, DepositStatus.APPROVED, actor)
            account = await self._directory.require(tx, request.username)
            account, record = await self._apply_delta(
                tx, account, request.amount, DEPOSIT_DESCRIPTION
            )
            logger.info("Deposit approved: id=%s username=%s by=%s", request_id, owner, actor)
            return DepositResolution(
                request=DepositRequestView.from_request(request),
                balance_change=BalanceChange.from_result(account, record),
            )

    @returns_result("Deposit request rejected")
    async def reject_deposit(self, actor: str, request_id: str) -> DepositResolution:
        async with self._transaction(deposit_lock(request_id)) as tx:
            await self._directory.require_admin(tx, actor)
            request = await self._deposits.resolve(tx, request_id, DepositStatus.REJECTED, actor)
            logger.info("Deposit rejected: id=%s by=%s", request_id, actor)
            return DepositResolution(request=DepositRequestView.from_request(request))

    @returns_result("success")
    async def list_transactions(
        self,
        actor: str,
        username: str,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> TransactionPageView:
        """Newest-first history of one account; `limit=None` returns everything."""
        async with self._read() as tx:
            await self._directory.require_admin(tx, actor)
            await self._directory.require(tx, username)
            try:
                records = await self._log.query(tx, username)
            except StoreFailureError as exc:
                logger.error("Transactions of %s unavailable: %s", username, exc.message)
                records = []

        cursor_id = cursor_decode(cursor)
        if cursor_id is not None:
            after = id_sort_key(cursor_id)
            records = [r for r in records if id_sort_key(r.id) < after]
        if limit is None:
            page, has_more = records, False
        else:
            page, has_more = records[:limit], len(records) > limit
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionPageView(
            items=[TransactionItem.from_record(r) for r in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    @returns_result("success")
    async def verify_invariants(self, actor: str) -> InvariantReport:
        async with self._read() as tx:
            await self._directory.require_admin(tx, actor)
            accounts = await self._directory.list_accounts(tx)
            violations: list[str] = []
            for account in accounts:
                records = await self._log.query(tx, account.username)
                violation = check_balance(account, records)
                if violation:
                    violations.append(violation)
        return InvariantReport(
            ok=not violations,
            checked_accounts=len(accounts),
            violations=violations,
        )


def _require_active(account: Account) -> None:
    if account.status == AccountStatus.PENDING:
        raise PendingApprovalError()
    if account.status == AccountStatus.BLOCKED:
        raise AccountBlockedError()
