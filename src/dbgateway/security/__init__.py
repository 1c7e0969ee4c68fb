"""SQL admission checks."""
from dbgateway.security.validator import SqlSecurityValidator, ValidationVerdict, classify_statement

__all__ = ["SqlSecurityValidator", "ValidationVerdict", "classify_statement"]
