"""
Tests for the import, balance and export pipelines.
"""
import io
from datetime import date, datetime
from decimal import Decimal

import pytest

from core.exceptions import BankStatementError, ErrorKind
from core.schema import CsvFormat, InsertResult, InsertStatus
from services.statement_service import StatementService

SALARY = "LT100001,2025-01-01T09:15:00,Employer,January salary,1500.00,EUR"
GROCERIES = "LT100001,2025-01-03T18:40:00,Maxima,Groceries,85.32,EUR"
RENT = "LT100001,2025-01-05T08:00:00,Landlord,Rent,-700.00,EUR"


class FailingDatabase:
    """Storage whose writes fail for reasons other than duplicates."""

    def insert_operation(self, operation):
        return InsertResult(status=InsertStatus.FAILED, error="disk I/O error")

    def find_operations(self, account_numbers, start=None, end=None):
        raise AssertionError("storage must not be queried")


@pytest.fixture
def untouchable_service():
    """Service whose storage fails the test if it is used."""
    return StatementService(db=FailingDatabase(), csv_format=CsvFormat())


# Import


def test_import_counts_new_and_duplicate_rows(service, csv_stream):
    """Rows identical after currency normalization are duplicates."""
    outcome = service.import_csv(csv_stream(
        "LT1,2025-01-01T09:15:00,Employer,Salary,1500.00,eur",
        "LT1,2025-01-01T09:15:00,Employer,Salary,1500.00,EUR",
    ))
    assert outcome.imported_count == 1
    assert outcome.skipped_duplicate_count == 1


def test_import_stores_decoded_operations(service, database, csv_stream):
    """Imported rows are stored with normalized values."""
    service.import_csv(csv_stream(SALARY, "LT100001,2025-01-03T18:40:00,Maxima,,85.32, eur "))

    ops = database.find_operations(["LT100001"])
    assert [op.beneficiary for op in ops] == ["Employer", "Maxima"]
    assert ops[0].comment == "January salary"
    assert ops[1].comment == ""
    assert ops[1].currency == "EUR"
    assert ops[1].amount == Decimal("85.32")


def test_reimport_is_idempotent(service, csv_stream):
    """Importing the same file twice skips everything the first call imported."""
    first = service.import_csv(csv_stream(SALARY, GROCERIES, RENT))
    second = service.import_csv(csv_stream(SALARY, GROCERIES, RENT))

    assert first.imported_count == 3
    assert second.imported_count == 0
    assert second.skipped_duplicate_count == first.imported_count


def test_import_counts_add_up_to_decoded_rows(service, csv_stream):
    """imported + skipped equals the number of decoded rows."""
    rows = [SALARY, GROCERIES, SALARY, RENT, GROCERIES]
    outcome = service.import_csv(csv_stream(*rows))
    assert outcome.imported_count + outcome.skipped_duplicate_count == len(rows)
    assert outcome.skipped_duplicate_count == 2


def test_import_header_only(service, csv_stream):
    outcome = service.import_csv(csv_stream())
    assert outcome.imported_count == 0
    assert outcome.skipped_duplicate_count == 0


def test_import_columns_in_any_order(service, database, csv_stream):
    """Columns are looked up by name; extra columns are ignored."""
    header = "currency,amount,note,comment,beneficiary,operationDateTime,accountNumber"
    outcome = service.import_csv(csv_stream("EUR,10.00,x,Coffee,Cafe,2025-01-01T10:00:00,LT1", header=header))
    assert outcome.imported_count == 1
    assert database.find_operations(["LT1"])[0].beneficiary == "Cafe"


def test_import_missing_column_aborts_before_writes(untouchable_service, csv_stream):
    """A missing header column aborts the call before any row is stored."""
    stream = csv_stream(
        "LT100001,2025-01-01T09:15:00,Employer,1500.00,EUR",
        header="accountNumber,operationDateTime,beneficiary,amount,currency",
    )
    with pytest.raises(BankStatementError) as exc_info:
        untouchable_service.import_csv(stream)

    exc = exc_info.value
    assert exc.kind is ErrorKind.MISSING_COLUMN
    assert "missing" in exc.message.lower()
    assert "comment" in exc.message.lower()


def test_import_decode_failure_keeps_earlier_rows(service, database, csv_stream):
    """A bad row aborts the import; rows stored before it stay stored."""
    stream = csv_stream(
        SALARY,
        "LT100001,2025-01-02T10:00:00,Shop,,not-a-number,EUR",
        GROCERIES,
    )
    with pytest.raises(BankStatementError) as exc_info:
        service.import_csv(stream)

    exc = exc_info.value
    assert exc.kind is ErrorKind.INVALID_CSV_RECORD
    assert exc.details["row"] == 2
    assert exc.details["column"] == "amount"
    assert exc.details["value"] == "not-a-number"
    assert exc.details["imported_before_failure"] == 1
    assert exc.details["skipped_before_failure"] == 0

    ops = database.find_operations(["LT100001"])
    assert [op.beneficiary for op in ops] == ["Employer"]


def test_import_reports_data_row_index_past_blank_lines(service, csv_stream):
    """Blank lines are skipped and do not count towards the reported row."""
    stream = csv_stream(SALARY, "", "", "LT100001,2025-01-02T10:00:00,Shop,,1.234,EUR")
    with pytest.raises(BankStatementError) as exc_info:
        service.import_csv(stream)

    exc = exc_info.value
    assert exc.details["row"] == 2
    assert "data row 2" in exc.message
    assert exc.details["imported_before_failure"] == 1


def test_import_rows_with_trailing_delimiter(service, database, csv_stream):
    """A trailing delimiter on every row does not shift the columns."""
    outcome = service.import_csv(csv_stream(SALARY + ",", GROCERIES + ","))
    assert outcome.imported_count == 2
    assert outcome.skipped_duplicate_count == 0

    ops = database.find_operations(["LT100001"])
    assert [op.account_number for op in ops] == ["LT100001", "LT100001"]
    assert [str(op.amount) for op in ops] == ["1500.00", "85.32"]


def test_import_storage_failure_is_fatal(untouchable_service, csv_stream):
    """Write failures other than duplicates abort the import."""
    with pytest.raises(BankStatementError) as exc_info:
        untouchable_service.import_csv(csv_stream(SALARY))

    exc = exc_info.value
    assert exc.kind is ErrorKind.STORAGE_FAILURE
    assert "disk I/O error" not in exc.message


@pytest.mark.parametrize("rows", [
    [SALARY],
    ["LT100001,bad-date,Employer,,1.00,EUR"],
])
def test_import_closes_stream(service, csv_stream, rows):
    """The input stream is released on success and on failure."""
    stream = csv_stream(*rows)
    try:
        service.import_csv(stream)
    except BankStatementError:
        pass
    assert stream.closed


def test_import_closes_stream_on_empty_content(service):
    stream = io.BytesIO(b"")
    with pytest.raises(BankStatementError) as exc_info:
        service.import_csv(stream)
    assert exc_info.value.kind is ErrorKind.INVALID_CSV_CONTENT
    assert stream.closed


# Balance


@pytest.fixture
def three_operations(service, csv_stream):
    service.import_csv(csv_stream(
        "LT1,2025-01-01T10:00:00,A,,100,EUR",
        "LT1,2025-01-05T10:00:00,B,,50,EUR",
        "LT1,2025-01-10T10:00:00,C,,25,EUR",
    ))


def test_balance_within_date_range(service, three_operations):
    """Only operations inside the window are summed."""
    report = service.calculate_balance("LT1", date(2025, 1, 2), date(2025, 1, 9))
    assert report.account_number == "LT1"
    assert [(b.currency, b.amount) for b in report.balances] == [("EUR", Decimal("50.00"))]


def test_balance_without_range(service, three_operations):
    report = service.calculate_balance("LT1")
    assert report.balances[0].amount == Decimal("175.00")


def test_balance_includes_boundary_timestamps(service, three_operations):
    """Operations exactly on a bound are included."""
    report = service.calculate_balance("LT1", datetime(2025, 1, 5, 10, 0), datetime(2025, 1, 5, 10, 0))
    assert report.balances[0].amount == Decimal("50.00")


def test_balance_date_bounds_cover_whole_days(service, three_operations):
    report = service.calculate_balance("LT1", date(2025, 1, 10), date(2025, 1, 10))
    assert report.balances[0].amount == Decimal("25.00")


def test_balance_empty_range_is_not_an_error(service, three_operations):
    report = service.calculate_balance("LT1", date(2025, 2, 1), date(2025, 2, 28))
    assert report.balances == []


def test_balance_unknown_account(service):
    report = service.calculate_balance("NOPE")
    assert report.account_number == "NOPE"
    assert report.balances == []


def test_balance_per_currency(service, csv_stream):
    """Each currency gets its own exact sum; absent currencies are omitted."""
    service.import_csv(csv_stream(
        "LT1,2025-01-01T10:00:00,A,,0.10,EUR",
        "LT1,2025-01-02T10:00:00,B,,0.20,EUR",
        "LT1,2025-01-03T10:00:00,C,,-12.50,usd",
        "LT1,2025-03-01T10:00:00,D,,5.00,GBP",
        "LT2,2025-01-01T10:00:00,E,,999.99,EUR",
    ))
    report = service.calculate_balance("LT1", date(2025, 1, 1), date(2025, 1, 31))
    assert [(b.currency, str(b.amount)) for b in report.balances] == [
        ("EUR", "0.30"),
        ("USD", "-12.50"),
    ]


def test_balance_sum_at_largest_amount_is_exact(service, csv_stream):
    """Sums of the largest accepted amounts keep every cent."""
    service.import_csv(csv_stream(
        "LT1,2025-01-01T10:00:00,A,,99999999999999999.99,EUR",
        "LT1,2025-01-02T10:00:00,B,,99999999999999999.99,EUR",
        "LT1,2025-01-03T10:00:00,C,,-0.01,EUR",
    ))
    report = service.calculate_balance("LT1")
    assert [(b.currency, str(b.amount)) for b in report.balances] == [
        ("EUR", "199999999999999999.97"),
    ]


def test_balance_rejects_reversed_range_before_storage(untouchable_service):
    with pytest.raises(BankStatementError) as exc_info:
        untouchable_service.calculate_balance("LT1", date(2025, 1, 10), date(2025, 1, 1))
    assert exc_info.value.kind is ErrorKind.INVALID_DATE_RANGE
    assert "invalid date range" in exc_info.value.message.lower()


# Export


def test_export_without_matches_has_header_only(service):
    outcome = service.export_csv(["LT1"], date(2025, 1, 1), date(2025, 1, 31))
    assert outcome.total_records == 0
    assert outcome.payload.decode("utf-8") == "accountNumber,operationDateTime,beneficiary,comment,amount,currency\n"


def test_export_rows_and_order(service, csv_stream):
    """Rows are ordered by account then time and rendered like the input."""
    service.import_csv(csv_stream(
        "LT2,2025-01-01T08:00:00,Shop,,1.00,EUR",
        GROCERIES,
        SALARY,
        "LT3,2025-01-01T08:00:00,Other,,9.00,EUR",
    ))
    outcome = service.export_csv(["LT2", "LT100001"])

    assert outcome.total_records == 3
    assert outcome.payload.decode("utf-8").splitlines() == [
        "accountNumber,operationDateTime,beneficiary,comment,amount,currency",
        SALARY,
        GROCERIES,
        "LT2,2025-01-01T08:00:00,Shop,,1.00,EUR",
    ]


def test_export_date_range(service, csv_stream):
    service.import_csv(csv_stream(SALARY, GROCERIES, RENT))
    outcome = service.export_csv(["LT100001"], date(2025, 1, 2), date(2025, 1, 4))
    assert outcome.total_records == 1
    assert "Maxima" in outcome.payload.decode("utf-8")


def test_export_quotes_delimiters(service, csv_stream):
    """Comments containing the delimiter survive export and re-import."""
    service.import_csv(csv_stream('LT1,2025-01-01T09:00:00,Shop,"Milk, bread",3.20,EUR'))
    outcome = service.export_csv(["LT1"])
    assert '"Milk, bread"' in outcome.payload.decode("utf-8")

    again = service.import_csv(io.BytesIO(outcome.payload))
    assert again.imported_count == 0
    assert again.skipped_duplicate_count == 1


def test_export_then_import_into_new_storage(service, csv_stream, tmp_path):
    """An export re-imports into empty storage as the same operations."""
    from core.db import Database

    service.import_csv(csv_stream(SALARY, GROCERIES, RENT))
    exported = service.export_csv(["LT100001"])

    target_db = Database(str(tmp_path / "copy.db"))
    target_db.init_db()
    target = StatementService(db=target_db, csv_format=CsvFormat())
    outcome = target.import_csv(io.BytesIO(exported.payload))

    assert outcome.imported_count == exported.total_records
    assert [op.model_dump() for op in target_db.find_operations(["LT100001"])] == [
        op.model_dump() for op in service.db.find_operations(["LT100001"])
    ]


def test_export_requires_accounts(untouchable_service):
    for accounts in ([], ["", "  "], None):
        with pytest.raises(BankStatementError) as exc_info:
            untouchable_service.export_csv(accounts)
        assert exc_info.value.kind is ErrorKind.INVALID_PARAMETER


def test_export_rejects_reversed_range_before_storage(untouchable_service):
    with pytest.raises(BankStatementError) as exc_info:
        untouchable_service.export_csv(["LT1"], datetime(2025, 1, 2), datetime(2025, 1, 1))
    assert exc_info.value.kind is ErrorKind.INVALID_DATE_RANGE


def test_export_with_semicolon_format(database, csv_stream):
    """The export uses the configured delimiter."""
    service = StatementService(db=database, csv_format=CsvFormat(delimiter=";"))
    service.import_csv(io.BytesIO(
        b"accountNumber;operationDateTime;beneficiary;comment;amount;currency\n"
        b"LT1;2025-01-01T09:00:00;Shop;Milk, bread;3.20;EUR\n"
    ))
    lines = service.export_csv("LT1").payload.decode("utf-8").splitlines()
    assert lines[1] == "LT1;2025-01-01T09:00:00;Shop;Milk, bread;3.20;EUR"
