"""Shared utilities for the SQLite transaction queue."""
from .errors import SQLError, new_sql_error, sanitize_error_message
from .log import db_name_var, get_logger, log_structured, log_success
from .result import Result
from .types import (
    CONSTRAINT_ERR,
    INVALID_STATE_ERR,
    QUOTA_ERR,
    STORAGE_LOCATIONS,
    SYNTAX_ERR,
    UNKNOWN_ERR,
    DatabaseState,
    ErrorCode,
    StorageLocation,
)

__all__ = [
    "Result",
    "SQLError",
    "new_sql_error",
    "sanitize_error_message",
    "get_logger",
    "log_success",
    "log_structured",
    "db_name_var",
    "ErrorCode",
    "DatabaseState",
    "StorageLocation",
    "STORAGE_LOCATIONS",
    "UNKNOWN_ERR",
    "SYNTAX_ERR",
    "CONSTRAINT_ERR",
    "QUOTA_ERR",
    "INVALID_STATE_ERR",
]
