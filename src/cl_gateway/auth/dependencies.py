"""FastAPI dependencies: ledger/session handles and the current account.

Usage in any protected router:
    from src.cl_gateway.auth.dependencies import get_current_account

    @router.get("/protected")
    async def protected(account: AccountView = Depends(get_current_account)):
        ...
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from src.cl_common.enums import AccountRole, AccountStatus
from src.cl_common.errors import (
    AccountBlockedError,
    AppError,
    InvalidCredentialsError,
    PendingApprovalError,
    UnauthorizedError,
)
from src.cl_gateway.auth.jwt_handler import decode_token
from src.cl_gateway.auth.sessions import SessionRegistry
from src.cl_ledger.application.schemas import AccountView
from src.cl_ledger.application.service import LedgerService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_ACCOUNT_NOT_FOUND = 1009  # AccountNotFoundError

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_ledger(request: Request) -> LedgerService:
    return request.app.state.ledger


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_session_id(
    token: Annotated[str, Depends(oauth2_scheme)],
    sessions: Annotated[SessionRegistry, Depends(get_sessions)],
) -> tuple[str, str]:
    """Validate the Bearer token and its session; return (username, session_id)."""
    try:
        payload = decode_token(token, expected_type="access")
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    session = await sessions.get(payload["jti"])
    if session is None or session.username != payload["sub"]:
        raise _CREDENTIALS_EXCEPTION
    return session.username, session.session_id


async def get_current_account(
    auth: Annotated[tuple[str, str], Depends(get_session_id)],
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> AccountView:
    """Reload the account on every request so a block takes effect immediately.

    Raises HTTP 401 for a bad token, a dead session or a deleted account, and
    an AppError for pending or blocked accounts or an unreadable store.
    """
    username, _ = auth
    result = await ledger.get_account(username)
    if not result.success:
        if result.code == _ACCOUNT_NOT_FOUND:
            raise _CREDENTIALS_EXCEPTION
        raise AppError(result.code, result.message, result.http_status)
    account: AccountView = result.data
    if account.status == AccountStatus.PENDING:
        raise PendingApprovalError()
    if account.status == AccountStatus.BLOCKED:
        raise AccountBlockedError()
    return account


async def require_admin(
    account: Annotated[AccountView, Depends(get_current_account)],
) -> AccountView:
    if account.role != AccountRole.ADMIN:
        raise UnauthorizedError()
    return account
