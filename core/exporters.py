"""
CSV exporter for stored bank operations.
Writes the header row followed by one encoded row per operation.
"""
import io
from datetime import datetime
from typing import Optional, Sequence

import pandas as pd

from core.codec import encode_operation
from core.exceptions import BankStatementError
from core.logger import setup_logger
from core.schema import CsvFormat, Operation

logger = setup_logger(__name__)


def export_to_csv(operations: Sequence[Operation], csv_format: CsvFormat) -> bytes:
    """
    Serialize operations to CSV bytes.

    Args:
        operations: Operations in the order they should appear
        csv_format: Header names, delimiter and encoding

    Returns:
        Encoded CSV payload; header only when operations is empty

    Raises:
        BankStatementError: CONFIGURATION if the encoding cannot represent the data
    """
    rows = [encode_operation(operation, csv_format) for operation in operations]
    output_df = pd.DataFrame(rows, columns=list(csv_format.columns), dtype=str)

    with io.StringIO() as buffer:
        output_df.to_csv(
            buffer,
            index=False,
            sep=csv_format.delimiter,
            lineterminator="\n",
        )
        text = buffer.getvalue()

    try:
        payload = text.encode(csv_format.encoding)
    except UnicodeEncodeError as e:
        logger.error(f"Failed to encode export as {csv_format.encoding}: {e}")
        raise BankStatementError.configuration(
            f"CSV encoding {csv_format.encoding} cannot represent the exported data",
            details={"encoding": csv_format.encoding}
        )

    logger.info(f"Exported {len(rows)} operations ({len(payload)} bytes)")
    return payload


def create_export_filename(now: Optional[datetime] = None) -> str:
    """
    Create a timestamped export filename.

    Args:
        now: Timestamp to use (defaults to current local time)

    Returns:
        Filename like bank-statement-20250131-094500.csv
    """
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"bank-statement-{timestamp}.csv"
