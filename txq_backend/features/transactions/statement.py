"""
Single SQL statement queued on a transaction.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from ...adapters.bridge.protocol import BatchItem
from ...adapters.bridge.sql_utils import coerce_sql, normalize_params

if TYPE_CHECKING:
    from ...shared import SQLError
    from .results import ResultSet
    from .transaction import Transaction

# on_success(tx, result_set); on_error(tx, error) -> False when the error was handled
StatementHandler = Callable[["Transaction", "ResultSet"], Any]
StatementErrorHandler = Callable[["Transaction", "SQLError"], Optional[bool]]


@dataclass
class Statement:
    sql: str
    params: list[Any]
    on_success: Optional[StatementHandler] = None
    on_error: Optional[StatementErrorHandler] = None

    @classmethod
    def build(
        cls,
        sql: Any,
        params: Any = None,
        on_success: Optional[StatementHandler] = None,
        on_error: Optional[StatementErrorHandler] = None,
    ) -> "Statement":
        """Coerce the SQL text and bound values into their wire form."""
        return cls(coerce_sql(sql), normalize_params(params), on_success, on_error)

    def to_item(self) -> BatchItem:
        return {"sql": self.sql, "params": list(self.params)}
