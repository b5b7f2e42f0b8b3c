"""AccountDirectory — account lifecycle rules.

State machine:

    pending --approve--> approved <--set_status--> blocked

`pending` is the only initial state (the seeded administrator starts
approved). No state is terminal. Balance changes are not made here: the
welcome bonus of an approval is credited by LedgerService through
mutate_balance, in the same store transaction as the status change.
"""

import logging
from decimal import Decimal

from src.cl_account.domain.models import Account
from src.cl_account.domain.repository import AccountRepositoryProtocol
from src.cl_common.datetime_utils import utc_now
from src.cl_common.enums import AccountRole, AccountStatus
from src.cl_common.errors import (
    AccountBlockedError,
    AccountNotFoundError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTransitionError,
    InvalidUsernameError,
    PendingApprovalError,
    UnauthorizedError,
    WeakPasswordError,
)
from src.cl_gateway.auth.password import hash_password, verify_password
from src.cl_store.domain.transaction import StoreTransaction

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
_MAX_PASSWORD_BYTES = 72

_SETTABLE_STATUSES = frozenset({AccountStatus.APPROVED, AccountStatus.BLOCKED})


class AccountDirectory:
    def __init__(
        self,
        repo: AccountRepositoryProtocol,
        admin_username: str,
        min_password_length: int,
    ) -> None:
        self._repo = repo
        self._admin_username = admin_username
        self._min_password_length = min_password_length

    @property
    def admin_username(self) -> str:
        return self._admin_username

    async def register(
        self, tx: StoreTransaction, username: str, password: str
    ) -> Account:
        """Create a pending user account with a zero balance.

        Raises InvalidUsernameError, DuplicateUsernameError or WeakPasswordError.
        The caller must hold the account-index lock.
        """
        if not username or not username.strip() or username == self._admin_username:
            raise InvalidUsernameError()
        if await self._repo.get(tx, username) is not None:
            raise DuplicateUsernameError()
        self._check_password(password)

        now = utc_now()
        account = Account(
            username=username,
            password_hash=hash_password(password),
            balance=Decimal("0.00"),
            role=AccountRole.USER,
            status=AccountStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        await self._repo.add(tx, account)
        logger.info("Account registered: username=%s status=pending", username)
        return account

    async def create_admin(self, tx: StoreTransaction, password: str) -> Account | None:
        """Seed the reserved administrator account. Returns None if it already exists."""
        if await self._repo.get(tx, self._admin_username) is not None:
            return None
        now = utc_now()
        account = Account(
            username=self._admin_username,
            password_hash=hash_password(password),
            balance=Decimal("0.00"),
            role=AccountRole.ADMIN,
            status=AccountStatus.APPROVED,
            created_at=now,
            updated_at=now,
        )
        await self._repo.add(tx, account)
        logger.info("Administrator account seeded: username=%s", self._admin_username)
        return account

    async def approve(self, tx: StoreTransaction, username: str) -> Account:
        """pending -> approved. Any other current status is an InvalidTransitionError."""
        account = await self.require(tx, username)
        if account.status != AccountStatus.PENDING:
            raise InvalidTransitionError(
                f"Account {username} is {account.status.value}, only pending accounts can be approved"
            )
        account.status = AccountStatus.APPROVED
        account.updated_at = utc_now()
        self._repo.save(tx, account)
        return account

    async def set_status(
        self, tx: StoreTransaction, username: str, status: AccountStatus
    ) -> Account:
        """Overwrite status with approved or blocked. Logs no transaction."""
        if status not in _SETTABLE_STATUSES:
            raise InvalidTransitionError(
                f"Status can only be set to approved or blocked, not {status.value}"
            )
        account = await self.require(tx, username)
        account.status = status
        account.updated_at = utc_now()
        self._repo.save(tx, account)
        logger.info("Account status set: username=%s status=%s", username, status.value)
        return account

    async def login(self, tx: StoreTransaction, username: str, password: str) -> Account:
        """Check credentials and status.

        Unknown username and wrong password both raise InvalidCredentialsError
        so usernames cannot be enumerated.
        """
        account = await self._repo.get(tx, username)
        if account is None or not verify_password(password, account.password_hash):
            raise InvalidCredentialsError()
        if account.status == AccountStatus.PENDING:
            raise PendingApprovalError()
        if account.status == AccountStatus.BLOCKED:
            raise AccountBlockedError()
        return account

    async def require(self, tx: StoreTransaction, username: str) -> Account:
        account = await self._repo.get(tx, username)
        if account is None:
            raise AccountNotFoundError(username)
        return account

    async def require_admin(self, tx: StoreTransaction, username: str) -> Account:
        account = await self._repo.get(tx, username)
        if (
            account is None
            or not account.is_admin
            or account.status != AccountStatus.APPROVED
        ):
            raise UnauthorizedError()
        return account

    async def list_accounts(self, tx: StoreTransaction) -> list[Account]:
        return await self._repo.list_accounts(tx)

    def save(self, tx: StoreTransaction, account: Account) -> None:
        self._repo.save(tx, account)

    def _check_password(self, password: str) -> None:
        if len(password) < self._min_password_length:
            raise WeakPasswordError(self._min_password_length)
        if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise InvalidInputError(
                1003, f"Password must be at most {_MAX_PASSWORD_BYTES} bytes long."
            )
