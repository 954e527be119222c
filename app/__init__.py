"""
HTTP transport for the bank statement service.
"""
