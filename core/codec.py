"""
Record codec: one CSV row <-> one Operation.

decode_row(encode_operation(op)) reproduces an equal Operation.
"""
from typing import Any, List, Mapping

from pydantic import ValidationError

from core.exceptions import BankStatementError
from core.normalize import clean_cell, parse_amount, parse_local_datetime
from core.schema import CsvFormat, Operation

TIME_HINT = "expected ISO-8601 local date-time, e.g. 2025-01-01T09:15:00"
AMOUNT_HINT = "expected a decimal number with at most 17 integer digits and 2 decimal places"


def _cell(row: Mapping[str, Any], csv_format: CsvFormat, field_name: str) -> str:
    return clean_cell(row.get(csv_format.column_for(field_name)))


def decode_row(row: Mapping[str, Any], csv_format: CsvFormat, row_number: int) -> Operation:
    """
    Decode one CSV row into a validated Operation.

    Args:
        row: Mapping of header name to raw cell (dict or pandas Series)
        csv_format: Header names for each field
        row_number: 1-based data row index (header and blank lines not counted)

    Returns:
        Operation with normalized comment and currency

    Raises:
        BankStatementError: INVALID_CSV_RECORD naming the column and raw value
    """
    raw = {
        "account_number": _cell(row, csv_format, "account_number"),
        "operation_time": _cell(row, csv_format, "operation_time"),
        "beneficiary": _cell(row, csv_format, "beneficiary"),
        "comment": _cell(row, csv_format, "comment"),
        "amount": _cell(row, csv_format, "amount"),
        "currency": _cell(row, csv_format, "currency"),
    }

    try:
        operation_time = parse_local_datetime(raw["operation_time"])
    except ValueError:
        raise BankStatementError.invalid_record(
            row_number, csv_format.operation_time_column, raw["operation_time"], TIME_HINT
        )

    try:
        amount = parse_amount(raw["amount"])
    except ValueError:
        raise BankStatementError.invalid_record(
            row_number, csv_format.amount_column, raw["amount"], AMOUNT_HINT
        )

    try:
        return Operation(
            account_number=raw["account_number"],
            operation_time=operation_time,
            beneficiary=raw["beneficiary"],
            comment=raw["comment"],
            amount=amount,
            currency=raw["currency"],
        )
    except ValidationError as e:
        error = e.errors()[0]
        field_name = str(error["loc"][0]) if error["loc"] else "account_number"
        raise BankStatementError.invalid_record(
            row_number,
            csv_format.column_for(field_name),
            raw.get(field_name, ""),
            error["msg"],
        )


def format_amount(operation: Operation) -> str:
    """Render the amount with its stored 2-digit scale, never in exponent form."""
    return f"{operation.amount:.2f}"


def encode_operation(operation: Operation, csv_format: CsvFormat) -> List[str]:
    """Encode one Operation as CSV cells ordered like csv_format.columns."""
    cells = {
        csv_format.account_number_column: operation.account_number,
        csv_format.operation_time_column: operation.operation_time.isoformat(),
        csv_format.beneficiary_column: operation.beneficiary,
        csv_format.comment_column: operation.comment,
        csv_format.amount_column: format_amount(operation),
        csv_format.currency_column: operation.currency,
    }
    return [cells[column] for column in csv_format.columns]
