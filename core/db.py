import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import get_settings
from core.exceptions import BankStatementError
from core.logger import setup_logger
from core.schema import InsertResult, InsertStatus, Operation

logger = setup_logger(__name__)

NATURAL_KEY_COLUMNS = "account_number, operation_time, beneficiary, amount, currency"

_INSERT_SQL = f"""
    INSERT INTO bank_operation
        (account_number, operation_time, beneficiary, operation_comment, amount, currency)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT ({NATURAL_KEY_COLUMNS}) DO NOTHING
"""


def time_key(value: datetime) -> str:
    """Fixed-width ISO text, so string comparison matches time order."""
    return value.isoformat(timespec="microseconds")


def amount_key(value: Decimal) -> str:
    return f"{value:.2f}"


class Database:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_settings().database_path

    def get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize database tables."""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS bank_operation (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    account_number TEXT NOT NULL CHECK (length(account_number) BETWEEN 1 AND 34),
                    operation_time TEXT NOT NULL,
                    beneficiary TEXT NOT NULL,
                    operation_comment TEXT NOT NULL DEFAULT '',
                    amount TEXT NOT NULL,
                    currency TEXT NOT NULL CHECK (length(currency) = 3),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE ({NATURAL_KEY_COLUMNS})
                )
            """)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Database initialization failed: {e}")
            raise BankStatementError.storage_failure("initialization") from e
        finally:
            conn.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(sqlite3.OperationalError),
        reraise=True
    )
    def _insert_row(self, params: Tuple[str, ...]) -> int:
        conn = self.get_connection()
        try:
            cursor = conn.execute(_INSERT_SQL, params)
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def insert_operation(self, operation: Operation) -> InsertResult:
        """
        Insert one operation.

        The natural-key conflict is resolved by the insert itself, so
        concurrent imports of overlapping data never store the same key twice.

        Returns:
            INSERTED, DUPLICATE_KEY when the natural key already exists,
            or FAILED with the storage error text for anything else
        """
        params = (
            operation.account_number,
            time_key(operation.operation_time),
            operation.beneficiary,
            operation.comment,
            amount_key(operation.amount),
            operation.currency,
        )
        try:
            inserted = self._insert_row(params)
        except sqlite3.Error as e:
            logger.error(f"Failed to insert operation for account {operation.account_number}: {e}")
            return InsertResult(status=InsertStatus.FAILED, error=str(e))

        if inserted == 0:
            return InsertResult(status=InsertStatus.DUPLICATE_KEY)
        return InsertResult(status=InsertStatus.INSERTED)

    def find_operations(
        self,
        account_numbers: Sequence[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Operation]:
        """
        Get operations for the given accounts within an inclusive time window,
        ordered by account number, operation time, then the rest of the natural key.
        """
        if not account_numbers:
            return []

        placeholders = ", ".join("?" for _ in account_numbers)
        conditions = [f"account_number IN ({placeholders})"]
        params: List[str] = list(account_numbers)
        if start is not None:
            conditions.append("operation_time >= ?")
            params.append(time_key(start))
        if end is not None:
            conditions.append("operation_time <= ?")
            params.append(time_key(end))

        query = (
            "SELECT account_number, operation_time, beneficiary, operation_comment, amount, currency "
            f"FROM bank_operation WHERE {' AND '.join(conditions)} "
            f"ORDER BY {NATURAL_KEY_COLUMNS}"
        )

        conn = self.get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to query operations for {list(account_numbers)}: {e}")
            raise BankStatementError.storage_failure("query") from e
        finally:
            conn.close()

        return [
            Operation(
                account_number=row["account_number"],
                operation_time=datetime.fromisoformat(row["operation_time"]),
                beneficiary=row["beneficiary"],
                comment=row["operation_comment"],
                amount=Decimal(row["amount"]),
                currency=row["currency"],
            )
            for row in rows
        ]


# Global DB instance
_db: Optional[Database] = None


def get_db() -> Database:
    global _db
    if _db is None:
        _db = Database()
        _db.init_db()
    return _db


def reset_db() -> None:
    """Drop the cached database handle (useful for testing)."""
    global _db
    _db = None
