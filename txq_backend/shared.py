"""Backend-facing alias for shared utilities."""

from __future__ import annotations

import txq_shared as _root_shared

Result = _root_shared.Result
SQLError = _root_shared.SQLError
ErrorCode = _root_shared.ErrorCode
DatabaseState = _root_shared.DatabaseState
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
db_name_var = _root_shared.db_name_var
new_sql_error = _root_shared.new_sql_error
sanitize_error_message = _root_shared.sanitize_error_message

__all__ = [
    "Result",
    "SQLError",
    "ErrorCode",
    "DatabaseState",
    "get_logger",
    "log_success",
    "log_structured",
    "db_name_var",
    "new_sql_error",
    "sanitize_error_message",
]
