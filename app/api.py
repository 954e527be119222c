"""
FastAPI routes for bank statement import, balance and export.
Thin transport layer: parses request parameters and maps error kinds to HTTP statuses.
"""
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from core.config import get_settings
from core.exceptions import BankStatementError
from core.exporters import create_export_filename
from core.logger import setup_logger
from core.normalize import parse_bound
from core.schema import BalanceReport, ImportOutcome
from services.statement_service import StatementService

logger = setup_logger(__name__)
settings = get_settings()

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Import bank statements from CSV, calculate balances and export statements",
    version="1.0.0"
)

CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}
DATE_PARAM_DESCRIPTION = "ISO-8601 date (2025-01-01) or local date-time (2025-01-01T09:15:00)"


def get_statement_service() -> StatementService:
    """Dependency providing the statement service."""
    return StatementService()


@app.exception_handler(BankStatementError)
async def handle_bank_statement_error(request: Request, exc: BankStatementError):
    """Map error kinds to status codes; internal failures stay opaque."""
    if exc.kind.is_user_error:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
        return JSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message, "details": exc.details}
        )

    logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message} {exc.details}")
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "bank_statement",
        "version": "1.0.0"
    }


def is_csv_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    """
    Accept uploads that look like CSV by file name or content type.

    Args:
        filename: Original upload file name
        content_type: Declared content type

    Returns:
        True if the upload should be parsed as CSV
    """
    name = (filename or "").lower()
    media_type = (content_type or "").split(";")[0].strip().lower()
    return name.endswith(".csv") or media_type in CSV_CONTENT_TYPES or media_type.startswith("text/")


def split_accounts(values: Optional[List[str]]) -> List[str]:
    """Accept both repeated and comma-separated account parameters."""
    accounts: List[str] = []
    for value in values or []:
        accounts.extend(value.split(","))
    return accounts


@app.post("/api/v1/statements/import", response_model=ImportOutcome)
def import_statement(
    file: UploadFile = File(...),
    service: StatementService = Depends(get_statement_service)
):
    """
    Import bank operations from a CSV file.

    Expected header:
    accountNumber,operationDateTime,beneficiary,comment,amount,currency

    Returns:
        Number of imported operations and skipped duplicates
    """
    logger.info(f"Received import file: {file.filename} ({file.content_type})")

    if not is_csv_upload(file.filename, file.content_type):
        raise BankStatementError.unsupported_file(file.filename)

    return service.import_csv(file.file)


@app.get("/api/v1/statements/accounts/{account_number}/balance", response_model=BalanceReport)
def get_balance(
    account_number: str,
    date_from: Optional[str] = Query(None, alias="from", description=DATE_PARAM_DESCRIPTION),
    date_to: Optional[str] = Query(None, alias="to", description=DATE_PARAM_DESCRIPTION),
    service: StatementService = Depends(get_statement_service)
):
    """
    Calculate per-currency balances of an account.

    Args:
        account_number: Account number
        date_from: Optional inclusive start
        date_to: Optional inclusive end

    Returns:
        Account number with one balance per currency
    """
    return service.calculate_balance(
        account_number,
        parse_bound(date_from, "from"),
        parse_bound(date_to, "to")
    )


@app.get("/api/v1/statements/export")
def export_statement(
    accounts: Optional[List[str]] = Query(None, description="One or more account numbers"),
    date_from: Optional[str] = Query(None, alias="from", description=DATE_PARAM_DESCRIPTION),
    date_to: Optional[str] = Query(None, alias="to", description=DATE_PARAM_DESCRIPTION),
    service: StatementService = Depends(get_statement_service)
):
    """
    Export operations of one or several accounts to CSV.

    Returns:
        CSV attachment with the number of exported operations in X-Total-Records
    """
    result = service.export_csv(
        split_accounts(accounts),
        parse_bound(date_from, "from"),
        parse_bound(date_to, "to")
    )

    filename = create_export_filename()
    logger.info(f"Exporting {result.total_records} operations as {filename}")

    return Response(
        content=result.payload,
        media_type="text/csv",
        headers={
            "X-Total-Records": str(result.total_records),
            "Content-Disposition": f'attachment; filename="{filename}"',
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
