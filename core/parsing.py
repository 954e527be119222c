"""
CSV parsing for bank statement imports.
Reads the raw byte stream into a string-typed DataFrame and validates the header.
"""
from typing import BinaryIO, Iterable, List

import pandas as pd

from core.exceptions import BankStatementError
from core.logger import setup_logger
from core.schema import CsvFormat

logger = setup_logger(__name__)

_BOM = "\ufeff"


def _clean_header(name) -> str:
    return str(name).strip().lstrip(_BOM).strip()


def read_csv_stream(stream: BinaryIO, csv_format: CsvFormat) -> pd.DataFrame:
    """
    Parse CSV bytes into a DataFrame of raw strings.

    Every cell is kept as text so amounts and timestamps are decoded exactly
    by the codec; missing trailing cells come back as NaN. Only the required
    columns are kept, looked up by name, so extra columns and extra trailing
    cells (e.g. a delimiter at the end of each line) are ignored.

    Args:
        stream: Binary stream with CSV content
        csv_format: Delimiter and encoding to use

    Returns:
        DataFrame with trimmed header names

    Raises:
        BankStatementError: INVALID_CSV_CONTENT for empty or non-tabular input
    """
    required = set(csv_format.columns)
    try:
        df = pd.read_csv(
            stream,
            sep=csv_format.delimiter,
            encoding=csv_format.encoding,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            usecols=lambda name: _clean_header(name) in required,
        )
    except pd.errors.EmptyDataError:
        raise BankStatementError.invalid_content("file is empty")
    except pd.errors.ParserError as e:
        logger.warning(f"CSV parser rejected input: {e}")
        raise BankStatementError.invalid_content("rows do not match the header layout")
    except UnicodeDecodeError:
        raise BankStatementError.invalid_content(f"file is not valid {csv_format.encoding} text")

    df.columns = [_clean_header(col) for col in df.columns]
    logger.info(f"Read {len(df)} CSV rows with columns {list(df.columns)}")
    return df


def find_missing_columns(columns: Iterable[str], csv_format: CsvFormat) -> List[str]:
    """Return required header names absent from columns, in format order."""
    present = set(columns)
    return [column for column in csv_format.columns if column not in present]


def validate_header(columns: Iterable[str], csv_format: CsvFormat) -> None:
    """
    Check that every required column is present. Order does not matter and
    extra columns are ignored.

    Raises:
        BankStatementError: MISSING_COLUMN naming every missing column
    """
    missing = find_missing_columns(columns, csv_format)
    if missing:
        logger.warning(f"CSV header is missing columns: {missing}")
        raise BankStatementError.missing_columns(missing)
