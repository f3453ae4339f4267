"""
Outcomes of a batch round trip and the row-set view handed to statement handlers.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ...shared import new_sql_error


@dataclass(frozen=True)
class Success:
    payload: Any


@dataclass(frozen=True)
class Failure:
    code: int
    message: str
    payload: Any = None

    def as_error_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


Outcome = Union[Success, Failure]


def outcome_from_reply(reply: Any) -> Outcome:
    """Turn one `{type, result}` bridge reply into a tagged outcome."""
    if not isinstance(reply, dict):
        return Failure(0, f"malformed batch reply: {reply!r}")
    tag = reply.get("type")
    result = reply.get("result")
    if tag == "success":
        return Success(result)
    if tag == "error":
        err = new_sql_error(result)
        return Failure(err.code, err.message, result)
    return Failure(0, f"unrecognized batch reply tag: {tag!r}", result)


class RowList(Sequence):
    """Read-only rows of a result set; `item(i)` mirrors indexed access."""

    def __init__(self, rows: Optional[list[dict[str, Any]]] = None):
        self._rows = list(rows or [])

    def item(self, index: int) -> Optional[dict[str, Any]]:
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return None

    @property
    def length(self) -> int:
        return len(self._rows)

    def __getitem__(self, index):
        return self._rows[index]

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"RowList({self._rows!r})"


@dataclass
class ResultSet:
    rows: RowList = field(default_factory=RowList)
    rows_affected: int = 0
    insert_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ResultSet":
        if not isinstance(payload, dict):
            return cls()
        rows = payload.get("rows")
        return cls(
            rows=RowList(rows if isinstance(rows, list) else []),
            rows_affected=int(payload.get("rowsAffected") or 0),
            insert_id=payload.get("insertId"),
        )
