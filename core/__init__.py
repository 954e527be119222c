"""
Core modules for bank statement processing.

This package contains:
- codec: CSV row <-> Operation conversion
- config: Application configuration and settings
- db: Database access layer
- exceptions: Tagged error type and error kinds
- exporters: CSV export functionality
- logger: Logging configuration
- normalize: Data normalization utilities
- parsing: CSV stream parsing and header validation
- schema: Pydantic models for operations and results
"""
