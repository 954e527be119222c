"""
Data normalization for bank operations.
Handles cell cleanup, currency codes, exact amounts, timestamps and date ranges.
"""
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple, Union

import pandas as pd

from core.exceptions import BankStatementError

CENT = Decimal("0.01")

# Plain decimal notation only: no exponent, no grouping, no underscores
_AMOUNT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

# Length of an ISO-8601 calendar date (yyyy-MM-dd)
_ISO_DATE_LENGTH = 10

# yyyy-MM-ddTHH:mm[:ss[.ffffff]], no offset
_LOCAL_DATETIME_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,6}))?)?$",
    re.ASCII,
)

# Amounts are stored as NUMERIC(19, 2)
MAX_INTEGER_DIGITS = 17

Bound = Union[date, datetime, None]


def clean_cell(value: Any) -> str:
    """
    Convert a raw CSV cell into a trimmed string.

    Args:
        value: Raw cell value (string, NaN for missing cells, or None)

    Returns:
        Trimmed string, empty for missing cells
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def normalize_comment(value: Any) -> Any:
    """Absent comments are stored as an empty string, never null."""
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    return value


def normalize_currency(value: Any) -> Any:
    """Trim and upper-case a currency code."""
    if isinstance(value, str):
        return value.strip().upper()
    return value


def to_scaled_amount(value: Decimal) -> Decimal:
    """
    Bring an amount to the fixed 2-digit scale without rounding.

    Args:
        value: Decimal amount

    Returns:
        Amount quantized to cents

    Raises:
        ValueError: If the amount is not finite, too large, or needs rounding
    """
    if not value.is_finite():
        raise ValueError("amount must be a finite number")
    if not value.is_zero() and value.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValueError(f"amount must have at most {MAX_INTEGER_DIGITS} integer digits")
    try:
        scaled = value.quantize(CENT)
    except InvalidOperation:
        raise ValueError("amount is too large")
    if scaled != value:
        raise ValueError("amount must have at most 2 decimal places")
    # -0.00 and 0.00 must map to the same stored key
    if scaled.is_zero():
        return Decimal("0.00")
    return scaled


def parse_amount(raw: str) -> Decimal:
    """
    Parse an exact decimal amount.

    Raises:
        ValueError: If the text is not a plain decimal number at cent scale
    """
    text = raw.strip()
    if not _AMOUNT_PATTERN.match(text):
        raise ValueError("not a decimal number")
    return to_scaled_amount(Decimal(text))


def parse_local_datetime(raw: str) -> datetime:
    """
    Parse an ISO-8601 local date-time (e.g. 2025-01-01T09:15:00).

    Raises:
        ValueError: For date-only values, offsets, other separators, or invalid dates
    """
    match = _LOCAL_DATETIME_PATTERN.match(raw.strip())
    if not match:
        raise ValueError("expected yyyy-MM-ddTHH:mm[:ss[.ffffff]]")
    year, month, day, hour, minute, second, fraction = match.groups()
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second or 0),
        int((fraction or "").ljust(6, "0")),
    )


def parse_bound(raw: Optional[str], name: str) -> Bound:
    """
    Parse a query bound given as an ISO date or local date-time.

    Args:
        raw: Raw parameter value, None or empty when absent
        name: Parameter name used in the error message

    Returns:
        date, datetime or None

    Raises:
        BankStatementError: INVALID_PARAMETER if the value cannot be parsed
    """
    if raw is None or not raw.strip():
        return None
    text = raw.strip()
    try:
        if len(text) == _ISO_DATE_LENGTH:
            return date.fromisoformat(text)
        return parse_local_datetime(text)
    except ValueError:
        raise BankStatementError.invalid_parameter(
            name, raw, "ISO-8601 date (yyyy-MM-dd) or date-time (yyyy-MM-ddTHH:mm:ss)"
        )


def start_of_range(value: Bound) -> Optional[datetime]:
    """A bare date as lower bound starts at midnight."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def end_of_range(value: Bound) -> Optional[datetime]:
    """A bare date as upper bound covers the whole day."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)


def resolve_range(date_from: Bound, date_to: Bound) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn optional bounds into an inclusive datetime window.

    Raises:
        BankStatementError: INVALID_DATE_RANGE if 'from' is after 'to'
    """
    start = start_of_range(date_from)
    end = end_of_range(date_to)
    if start is not None and end is not None and start > end:
        raise BankStatementError.invalid_date_range(date_from, date_to)
    return start, end


def normalize_account_numbers(values: Optional[Iterable[str]]) -> List[str]:
    """Trim, drop empty entries and de-duplicate while keeping order."""
    if isinstance(values, str):
        values = [values]
    accounts: List[str] = []
    for value in values or []:
        account = value.strip() if isinstance(value, str) else ""
        if account and account not in accounts:
            accounts.append(account)
    return accounts
