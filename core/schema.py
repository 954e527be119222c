"""
Pydantic models for bank operations and pipeline results.
Defines the persisted Operation entity and the CSV format configuration.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.normalize import normalize_comment, normalize_currency, to_scaled_amount

# Operation fields in CSV column order
FIELD_ORDER: Tuple[str, ...] = (
    "account_number",
    "operation_time",
    "beneficiary",
    "comment",
    "amount",
    "currency",
)

MAX_ACCOUNT_NUMBER_LENGTH = 34


class Operation(BaseModel):
    """A single bank operation as stored. Immutable once created."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    account_number: str = Field(..., min_length=1, max_length=MAX_ACCOUNT_NUMBER_LENGTH)
    operation_time: datetime
    beneficiary: str = Field(..., min_length=1, max_length=255)
    comment: Annotated[str, BeforeValidator(normalize_comment)] = Field(default="", max_length=1024)
    amount: Decimal
    currency: Annotated[str, BeforeValidator(normalize_currency)] = Field(..., pattern=r"^[A-Z]{3}$")

    @field_validator("operation_time")
    @classmethod
    def validate_local_time(cls, v):
        """Operation times are local date-times without an offset."""
        if v.tzinfo is not None:
            raise ValueError("operation time must not carry a UTC offset")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return to_scaled_amount(v)

    @property
    def natural_key(self) -> Tuple[str, datetime, str, Decimal, str]:
        """Identity used for duplicate detection; comment is not part of it."""
        return (self.account_number, self.operation_time, self.beneficiary, self.amount, self.currency)


class CsvFormat(BaseModel):
    """
    CSV layout shared by import and export.

    Header names are configurable per field so alternate schemas can be
    exercised without touching the codec.
    """

    model_config = ConfigDict(frozen=True)

    account_number_column: str = "accountNumber"
    operation_time_column: str = "operationDateTime"
    beneficiary_column: str = "beneficiary"
    comment_column: str = "comment"
    amount_column: str = "amount"
    currency_column: str = "currency"
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str = "utf-8"

    @property
    def columns(self) -> Tuple[str, ...]:
        """Header names in export order."""
        return tuple(self.column_for(name) for name in FIELD_ORDER)

    def column_for(self, field_name: str) -> str:
        return getattr(self, f"{field_name}_column")


class _ResultModel(BaseModel):
    """Immutable result with camelCase JSON aliases."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ImportOutcome(_ResultModel):
    """Counts produced by one import call."""
    imported_count: int = Field(..., ge=0)
    skipped_duplicate_count: int = Field(..., ge=0)


class CurrencyBalance(_ResultModel):
    currency: str
    amount: Decimal


class BalanceReport(_ResultModel):
    """Per-currency balances for one account; empty when nothing matched."""
    account_number: str
    balances: List[CurrencyBalance] = Field(default_factory=list)


class ExportOutcome(_ResultModel):
    payload: bytes
    total_records: int = Field(..., ge=0)


class InsertStatus(str, Enum):
    """Outcome of a single storage write."""

    INSERTED = "inserted"
    DUPLICATE_KEY = "duplicate_key"
    FAILED = "failed"


class InsertResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: InsertStatus
    error: Optional[str] = None
