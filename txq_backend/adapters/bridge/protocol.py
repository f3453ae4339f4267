"""
Contract of the execution bridge: the asynchronous primitive that opens,
closes and deletes named databases and runs ordered SQL batches against them.

Every call is a coroutine; failures of open/close/delete are raised as
`SQLError`. `execute_batch` never raises for per-statement failures: it returns
one reply per submitted item, in submission order.
"""
from __future__ import annotations

from typing import Any, Protocol, TypedDict


class BatchItem(TypedDict):
    sql: str
    params: list[Any]


class BatchReply(TypedDict):
    type: str  # "success" | "error"
    result: Any


class ExecutionBridge(Protocol):
    async def open(self, name: str, location: str) -> None: ...

    async def close(self, name: str) -> None: ...

    async def delete_database(self, name: str, location: str) -> None: ...

    async def is_database_open(self, name: str) -> bool: ...

    async def execute_batch(self, name: str, items: list[BatchItem]) -> list[BatchReply]: ...


def success_reply(payload: Any) -> BatchReply:
    return {"type": "success", "result": payload}


def error_reply(message: str, code: int = 0, **extra: Any) -> BatchReply:
    return {"type": "error", "result": {"code": code, "message": message, **extra}}
