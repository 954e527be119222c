"""
Error taxonomy for the bank statement service.

Every failure is a single exception type tagged with an ErrorKind, so the
transport layer can map kinds to status codes without type inspection.
"""
from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorKind(str, Enum):
    """Stable error codes exposed to API clients."""

    MISSING_COLUMN = "MISSING_COLUMN"
    INVALID_CSV_CONTENT = "INVALID_CSV_CONTENT"
    INVALID_CSV_RECORD = "INVALID_CSV_RECORD"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    UNSUPPORTED_FILE = "UNSUPPORTED_FILE"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    CONFIGURATION = "CONFIGURATION"

    @property
    def is_user_error(self) -> bool:
        """True when the caller caused the error and may see its details."""
        return self not in (ErrorKind.STORAGE_FAILURE, ErrorKind.CONFIGURATION)


class BankStatementError(Exception):
    """Base exception for all bank statement errors."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            kind: Error kind (stable code)
            message: Human-readable error message
            details: Field context (column, value, row number...)
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    @property
    def code(self) -> str:
        return self.kind.value

    @classmethod
    def missing_columns(cls, columns: Iterable[str]) -> "BankStatementError":
        missing = list(columns)
        label = "column" if len(missing) == 1 else "columns"
        return cls(
            ErrorKind.MISSING_COLUMN,
            f"Missing required {label}: {', '.join(missing)}",
            details={"missing_columns": missing}
        )

    @classmethod
    def invalid_content(cls, reason: str) -> "BankStatementError":
        return cls(
            ErrorKind.INVALID_CSV_CONTENT,
            f"Invalid CSV content: {reason}",
            details={"reason": reason}
        )

    @classmethod
    def invalid_record(
        cls,
        row_number: int,
        column: str,
        value: Any,
        reason: str
    ) -> "BankStatementError":
        return cls(
            ErrorKind.INVALID_CSV_RECORD,
            f"Invalid value for '{column}' in data row {row_number}: '{value}' ({reason})",
            details={"row": row_number, "column": column, "value": value}
        )

    @classmethod
    def invalid_date_range(cls, date_from: Any, date_to: Any) -> "BankStatementError":
        return cls(
            ErrorKind.INVALID_DATE_RANGE,
            "Invalid date range: 'from' is after 'to'",
            details={"from": str(date_from), "to": str(date_to)}
        )

    @classmethod
    def invalid_parameter(
        cls,
        name: str,
        value: Any,
        expected: str
    ) -> "BankStatementError":
        return cls(
            ErrorKind.INVALID_PARAMETER,
            f"Invalid value for '{name}': {value}. Expected: {expected}",
            details={"parameter": name, "value": value}
        )

    @classmethod
    def unsupported_file(cls, filename: Optional[str]) -> "BankStatementError":
        return cls(
            ErrorKind.UNSUPPORTED_FILE,
            "Only CSV files are supported",
            details={"filename": filename}
        )

    @classmethod
    def storage_failure(cls, operation: str) -> "BankStatementError":
        return cls(
            ErrorKind.STORAGE_FAILURE,
            f"Storage failure during {operation}",
            details={"operation": operation}
        )

    @classmethod
    def configuration(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "BankStatementError":
        return cls(ErrorKind.CONFIGURATION, message, details=details)
