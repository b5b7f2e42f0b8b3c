"""Decimal arithmetic utilities for credit amounts.

Balances and amounts are Decimal with two fractional digits. No float.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.cl_common.errors import InvalidAmountError

CREDIT_QUANTUM = Decimal("0.01")

# Largest magnitude accepted for a single amount. Keeps every balance far
# below the 28 significant digits of the default decimal context.
MAX_CREDIT_AMOUNT = Decimal("1000000000000.00")


def to_credits(value: Decimal | int | str) -> Decimal:
    """Normalize a caller-supplied amount to a two-place Decimal.

    Raises InvalidAmountError for NaN, infinities, unparsable input and
    amounts beyond MAX_CREDIT_AMOUNT.
    """
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if abs(amount) > MAX_CREDIT_AMOUNT:
        raise InvalidAmountError(f"Amount must not exceed {MAX_CREDIT_AMOUNT}.")
    try:
        return amount.quantize(CREDIT_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from None


def require_positive(value: Decimal | int | str) -> Decimal:
    amount = to_credits(value)
    if amount <= 0:
        raise InvalidAmountError()
    return amount


def credits_to_display(amount: Decimal) -> str:
    """Format credits for display: Decimal('1500') -> '1,500.00', Decimal('-12.5') -> '-12.50'."""
    if amount < 0:
        return f"-{-amount:,.2f}"
    return f"{amount:,.2f}"
