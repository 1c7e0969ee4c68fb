"""Static admission check run on statement text before any connection is acquired."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional

import sqlglot
from pydantic import BaseModel, Field
from sqlglot import expressions as exp

from dbgateway.common.logger import get_logger

logger = get_logger("sql_security")


def _expression_types(*names: str) -> tuple:
    # sqlglot renamed some nodes across releases (AlterTable -> Alter)
    return tuple(getattr(exp, name) for name in names if hasattr(exp, name))


_READ_TYPES = _expression_types("Select", "Union", "Intersect", "Except", "Subquery")
_WRITE_TYPES = _expression_types("Insert", "Update", "Delete", "Merge")
_DDL_TYPES = _expression_types("Create", "Drop", "Alter", "AlterTable", "TruncateTable", "Grant")

_SEVERITY = {"read": 0, "unknown": 1, "write": 2, "ddl": 3}


def classify_statement(sql: str, dialect: Optional[str] = None) -> str:
    """Classifies SQL as ``read``, ``write``, ``ddl`` or ``unknown`` without executing it.

    Multi-statement text takes the class of its most dangerous statement.

    Args:
        sql (str): The SQL text to classify.
        dialect (Optional[str]): Optional sqlglot dialect (e.g. "tsql", "postgres").

    Returns:
        str: The statement class.
    """
    try:
        statements = [s for s in sqlglot.parse(sql, read=dialect) if s is not None]
    except Exception:
        return "unknown"
    if not statements:
        return "unknown"

    worst = "read"
    for statement in statements:
        if isinstance(statement, _DDL_TYPES):
            kind = "ddl"
        elif isinstance(statement, _WRITE_TYPES):
            kind = "write"
        elif isinstance(statement, _READ_TYPES):
            kind = "write" if statement.find(*_WRITE_TYPES) else "read"
        else:
            kind = "unknown"
        if _SEVERITY[kind] > _SEVERITY[worst]:
            worst = kind
    return worst


class ValidationVerdict(BaseModel):
    """Outcome of one admission check."""
    admitted: bool
    reason: str = ""
    offending_token: str = ""
    statement_text: str = Field(default="", exclude=True, repr=False)

    @property
    def statement_type(self) -> str:
        """Statement class of the checked text, parsed on demand."""
        return classify_statement(self.statement_text)

    def to_payload(self, security_enabled: bool = True) -> Dict[str, Any]:
        """In-band rejection envelope handed back instead of a result."""
        return {
            "error": self.reason,
            "detected_keyword": self.offending_token,
            "sql_security_enabled": security_enabled,
        }


def _compile_blacklist(keywords: Iterable[str]) -> Optional[re.Pattern]:
    alternatives = []
    for keyword in keywords:
        words = keyword.split()
        if words:
            alternatives.append(r"\s+".join(re.escape(word) for word in words))
    if not alternatives:
        return None
    # Longest phrase first so "DROP TABLE" wins over "DROP" at the same offset.
    alternatives.sort(key=len, reverse=True)
    return re.compile(r"(?<![\w$])(?:" + "|".join(alternatives) + r")(?![\w$])", re.IGNORECASE)


class SqlSecurityValidator:
    """
    Keyword blacklist gate.

    Matching is case-insensitive, tolerant of any whitespace between the words
    of a phrase, and bounded on identifier characters so names such as
    ``dropped_at`` or ``is_deleted`` never trip it. The earliest match wins and
    its literal text is reported. Backend permissions remain the real control.
    """

    def __init__(self, blocked_keywords: Iterable[str], enabled: bool = True):
        self.blocked_keywords = [k for k in blocked_keywords if k and k.strip()]
        self.enabled = enabled
        self._pattern = _compile_blacklist(self.blocked_keywords)

    @classmethod
    def from_settings(cls, settings: Any) -> "SqlSecurityValidator":
        return cls(settings.sql_blocked_keywords, enabled=settings.sql_security_enabled)

    def validate(self, sql: Optional[str]) -> ValidationVerdict:
        sql = sql or ""
        match = self._pattern.search(sql) if self.enabled and self._pattern is not None else None
        if match is None:
            return ValidationVerdict(admitted=True, statement_text=sql)

        token = match.group(0)
        logger.warning(f"SQL rejected by admission check, keyword: '{token}'")
        return ValidationVerdict(
            admitted=False,
            reason=f"SQL contains forbidden keyword: {token}",
            offending_token=token,
            statement_text=sql,
        )
