"""
Bank statement service.
Encapsulates the import, balance and export pipelines.
"""
from collections import defaultdict
from decimal import Decimal
from typing import BinaryIO, Dict, Iterable, Optional

from core.codec import decode_row
from core.config import get_settings
from core.db import Database, get_db
from core.exceptions import BankStatementError
from core.exporters import export_to_csv
from core.logger import setup_logger
from core.normalize import Bound, normalize_account_numbers, resolve_range
from core.parsing import read_csv_stream, validate_header
from core.schema import (
    BalanceReport,
    CsvFormat,
    CurrencyBalance,
    ExportOutcome,
    ImportOutcome,
    InsertStatus,
)

logger = setup_logger(__name__)

# Rows are reported by 1-based data row index; header and blank lines are not counted
FIRST_DATA_ROW = 1


class StatementService:
    """Service for importing, aggregating and exporting bank operations."""

    def __init__(self, db: Optional[Database] = None, csv_format: Optional[CsvFormat] = None):
        """
        Initialize statement service.

        Args:
            db: Storage to use (defaults to the shared database)
            csv_format: CSV layout (defaults to the configured one)
        """
        self.db = db or get_db()
        self.csv_format = csv_format or get_settings().csv_format()

    def import_csv(self, stream: BinaryIO) -> ImportOutcome:
        """
        Import operations from a CSV stream, one insert per row.

        Rows whose natural key is already stored are counted as skipped
        duplicates. A row that fails to decode aborts the import; rows
        inserted earlier in the same call stay stored.

        Args:
            stream: Binary CSV stream; closed before this method returns

        Returns:
            ImportOutcome with imported and skipped duplicate counts

        Raises:
            BankStatementError: MISSING_COLUMN, INVALID_CSV_CONTENT or
                INVALID_CSV_RECORD for bad input, STORAGE_FAILURE for
                write failures other than duplicates
        """
        try:
            df = read_csv_stream(stream, self.csv_format)
        finally:
            stream.close()

        validate_header(df.columns, self.csv_format)
        logger.info(f"Importing {len(df)} CSV rows")

        imported = 0
        skipped = 0
        for position, (_, row) in enumerate(df.iterrows()):
            row_number = position + FIRST_DATA_ROW
            try:
                operation = decode_row(row, self.csv_format, row_number)
            except BankStatementError as e:
                logger.warning(
                    f"Import aborted at data row {row_number} after {imported} imported, "
                    f"{skipped} skipped: {e.message}"
                )
                e.details["imported_before_failure"] = imported
                e.details["skipped_before_failure"] = skipped
                raise

            result = self.db.insert_operation(operation)
            if result.status is InsertStatus.INSERTED:
                imported += 1
            elif result.status is InsertStatus.DUPLICATE_KEY:
                skipped += 1
                logger.debug(f"Skipped duplicate operation at data row {row_number}")
            else:
                logger.error(f"Import aborted at data row {row_number}: storage failure ({result.error})")
                raise BankStatementError.storage_failure("import")

        logger.info(f"Import completed: {imported} imported, {skipped} duplicates skipped")
        return ImportOutcome(imported_count=imported, skipped_duplicate_count=skipped)

    def calculate_balance(
        self,
        account_number: str,
        date_from: Bound = None,
        date_to: Bound = None
    ) -> BalanceReport:
        """
        Sum operation amounts per currency for one account.

        Args:
            account_number: Account to report on
            date_from: Inclusive lower bound (a date means start of that day)
            date_to: Inclusive upper bound (a date means end of that day)

        Returns:
            BalanceReport with one entry per currency that has operations,
            sorted by currency code

        Raises:
            BankStatementError: INVALID_DATE_RANGE if date_from is after date_to
        """
        start, end = resolve_range(date_from, date_to)
        operations = self.db.find_operations([account_number], start, end)

        totals: Dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for operation in operations:
            totals[operation.currency] += operation.amount

        balances = [
            CurrencyBalance(currency=currency, amount=totals[currency])
            for currency in sorted(totals)
        ]
        logger.info(
            f"Balance for {account_number}: {len(operations)} operations in {len(balances)} currencies"
        )
        return BalanceReport(account_number=account_number, balances=balances)

    def export_csv(
        self,
        account_numbers: Iterable[str],
        date_from: Bound = None,
        date_to: Bound = None
    ) -> ExportOutcome:
        """
        Export operations of one or more accounts to CSV.

        Args:
            account_numbers: Accounts to export (at least one)
            date_from: Inclusive lower bound
            date_to: Inclusive upper bound

        Returns:
            ExportOutcome with the CSV payload and number of exported operations

        Raises:
            BankStatementError: INVALID_PARAMETER without accounts,
                INVALID_DATE_RANGE if date_from is after date_to
        """
        accounts = normalize_account_numbers(account_numbers)
        if not accounts:
            raise BankStatementError.invalid_parameter("accounts", "", "at least one account number")

        start, end = resolve_range(date_from, date_to)
        operations = self.db.find_operations(accounts, start, end)
        payload = export_to_csv(operations, self.csv_format)

        return ExportOutcome(payload=payload, total_records=len(operations))
