"""Money parsing for values arriving from the HTTP layer."""

from decimal import Decimal, InvalidOperation
from typing import Any

from money_manager.ledger.errors import InvalidAmountError


def parse_decimal(value: Any) -> Decimal:
    """
    Convert a number or numeric string to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"),
    not its binary approximation.

    Raises:
        InvalidAmountError: If the value is missing, non-numeric or not finite
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError("Please provide an amount")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f"Amount is not a number: {value!r}")
    if not amount.is_finite():
        raise InvalidAmountError(f"Amount is not a number: {value!r}")
    return amount


def parse_positive_amount(value: Any) -> Decimal:
    """
    Like parse_decimal, but the amount must also be greater than zero.

    Raises:
        InvalidAmountError: If the value is not a positive number
    """
    amount = parse_decimal(value)
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    return amount
