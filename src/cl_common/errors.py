"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Account lifecycle
  2xxx: Balance/Ledger
  3xxx: Deposit requests
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class InvalidInputError(AppError):
    """Malformed caller input (empty username, non-positive amount, ...)."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 422)


class InvalidTransitionError(AppError):
    """A status change that the current state does not allow."""

    def __init__(self, message: str, code: int = 1010) -> None:
        super().__init__(code, message, 409)


# --- 1xxx: Auth/Account ---

class InvalidUsernameError(InvalidInputError):
    def __init__(self) -> None:
        super().__init__(1001, "This username is reserved or invalid.")


class DuplicateUsernameError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Username already exists.", 409)


class WeakPasswordError(InvalidInputError):
    def __init__(self, min_length: int) -> None:
        super().__init__(
            1003, f"Password must be at least {min_length} characters long."
        )


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Invalid username or password.", 401)


class PendingApprovalError(AppError):
    def __init__(self) -> None:
        super().__init__(
            1005, "Your account is pending approval by an administrator.", 403
        )


class AccountBlockedError(AppError):
    def __init__(self) -> None:
        super().__init__(
            1006, "Your account has been blocked. Please contact support.", 403
        )


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1007, "Refresh token is invalid or expired", 401)


class UnauthorizedError(AppError):
    def __init__(self) -> None:
        super().__init__(1008, "Administrator privileges required.", 403)


class AccountNotFoundError(AppError):
    def __init__(self, username: str) -> None:
        super().__init__(1009, f"Account not found: {username}", 404)


# --- 2xxx: Balance/Ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            2001,
            f"Insufficient balance. You need {required} credit(s). "
            f"Your balance is {available:.2f}.",
            422,
        )


class InvalidAmountError(InvalidInputError):
    def __init__(self, detail: str = "Amount must be positive.") -> None:
        super().__init__(2002, detail)


# --- 3xxx: Deposit requests ---

class DepositRequestNotFoundError(AppError):
    def __init__(self, request_id: str) -> None:
        super().__init__(3001, f"Deposit request not found: {request_id}", 404)


class DepositAlreadyResolvedError(InvalidTransitionError):
    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(
            f"Deposit request {request_id} is already {status}", code=3002
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StoreFailureError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Store failure: {detail}", 503)


class StoreConflictError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            9004, f"Concurrent modification: {detail}. Please retry.", 409
        )
