"""
Shared fixtures for the bank statement tests.
"""
import io

import pytest

from core.config import reset_settings
from core.db import Database, reset_db
from core.schema import CsvFormat
from services.statement_service import StatementService

HEADER = "accountNumber,operationDateTime,beneficiary,comment,amount,currency"


@pytest.fixture(autouse=True)
def reset_singletons():
    """Isolate tests from cached settings and database handles."""
    reset_settings()
    reset_db()
    yield
    reset_settings()
    reset_db()


@pytest.fixture
def csv_stream():
    """Build a binary CSV stream from a header and data lines."""
    def build(*rows: str, header: str = HEADER) -> io.BytesIO:
        lines = [header, *rows] if header is not None else list(rows)
        return io.BytesIO(("\n".join(lines) + "\n").encode("utf-8"))
    return build


@pytest.fixture
def database(tmp_path):
    """Initialized sqlite database in a temporary directory."""
    db = Database(str(tmp_path / "statements.db"))
    db.init_db()
    return db


@pytest.fixture
def service(database):
    """Statement service backed by the temporary database."""
    return StatementService(db=database, csv_format=CsvFormat())
