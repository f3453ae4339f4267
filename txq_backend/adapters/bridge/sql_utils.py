"""
SQL helpers shared by the bridge adapters and the transaction core.
"""
import re
import sqlite3
from typing import Any

from ...shared import get_logger
from txq_shared.types import CONSTRAINT_ERR, QUOTA_ERR, SYNTAX_ERR, UNKNOWN_ERR

logger = get_logger(__name__)

# Leading keyword of statements a read-only transaction must never send.
READ_ONLY_PATTERN = re.compile(
    r"^(\s|;)*(?:alter|create|delete|drop|insert|reindex|replace|update)",
    re.IGNORECASE,
)

# Primary SQLite result codes (extended codes carry these in the low byte).
_SQLITE_ERROR = 1
_SQLITE_FULL = 13
_SQLITE_CONSTRAINT = 19


def is_read_only_violation(sql: str) -> bool:
    return bool(READ_ONLY_PATTERN.match(sql))


def coerce_sql(sql: Any) -> str:
    return sql if isinstance(sql, str) else str(sql)


def normalize_param(value: Any) -> Any:
    """Pass numbers, text and None through; everything else travels as text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return value
    return str(value)


def normalize_params(values: Any) -> list[Any]:
    if not isinstance(values, (list, tuple)):
        return []
    return [normalize_param(v) for v in values]


def map_sqlite_error_code(exc: BaseException) -> int:
    """Translate a sqlite3 exception into the numeric SQL error code reported to handlers."""
    raw = getattr(exc, "sqlite_errorcode", None)
    if isinstance(raw, int):
        primary = raw & 0xFF
        if primary == _SQLITE_ERROR:
            return SYNTAX_ERR
        if primary == _SQLITE_FULL:
            return QUOTA_ERR
        if primary == _SQLITE_CONSTRAINT:
            return CONSTRAINT_ERR
        return UNKNOWN_ERR

    if isinstance(exc, sqlite3.IntegrityError):
        return CONSTRAINT_ERR
    msg = str(exc).lower()
    if "database or disk is full" in msg:
        return QUOTA_ERR
    if isinstance(exc, sqlite3.OperationalError):
        return SYNTAX_ERR
    return UNKNOWN_ERR


def rows_to_dicts(rows: Any) -> list[dict[str, Any]]:
    if not rows:
        return []
    out: list[dict[str, Any]] = []
    for r in rows:
        try:
            out.append(dict(r))
        except (TypeError, ValueError):
            logger.debug("Skipping row that cannot be converted to a mapping: %r", r)
    return out
