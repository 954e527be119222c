"""
Service layer for business logic.

This package contains the StatementService, which runs the CSV import,
per-currency balance and CSV export pipelines against storage.
"""
