import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest
import pytest_asyncio

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from txq_backend.adapters.bridge import SqliteBridge, error_reply, success_reply  # noqa: E402
from txq_backend.features.transactions import SessionManager  # noqa: E402
from txq_backend.shared import ErrorCode, SQLError  # noqa: E402


class ScriptedBridge:
    """
    In-memory execution bridge with scripted replies.

    - `fail_sql[sql] = payload` makes that statement reply with an error payload
    - `rows[sql] = [...]` makes that statement return rows
    - `delays[sql] = seconds` delays any batch containing that statement
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.batches: list[list[dict[str, Any]]] = []
        self.fail_sql: dict[str, dict[str, Any]] = {}
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.delays: dict[str, float] = {}
        self.open_error: Optional[Exception] = None
        self.open_delay = 0.0
        self.batch_error: Optional[Exception] = None
        self.truncate_replies: Optional[int] = None
        self._open: set[str] = set()

    @property
    def sent_sql(self) -> list[str]:
        return [item["sql"] for batch in self.batches for item in batch]

    def batch_sql(self) -> list[list[str]]:
        return [[item["sql"] for item in batch] for batch in self.batches]

    async def open(self, name: str, location: str = "docs") -> None:
        self.calls.append(("open", name, location))
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        self._open.add(name)

    async def close(self, name: str) -> None:
        self.calls.append(("close", name))
        if name not in self._open:
            raise SQLError("Specified db was not open", kind=ErrorCode.CLOSE_FAILED)
        self._open.discard(name)

    async def delete_database(self, name: str, location: str = "docs") -> None:
        self.calls.append(("delete", name, location))
        self._open.discard(name)

    async def is_database_open(self, name: str) -> bool:
        return name in self._open

    async def execute_batch(self, name: str, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.batches.append([dict(item) for item in items])
        delay = max([self.delays.get(item["sql"], 0.0) for item in items] or [0.0])
        await asyncio.sleep(delay)
        if self.batch_error is not None:
            raise self.batch_error
        replies = []
        for item in items:
            sql = item["sql"]
            if sql in self.fail_sql:
                payload = self.fail_sql[sql]
                replies.append(error_reply(payload.get("message", "failed"), payload.get("code", 0)))
            else:
                replies.append(success_reply({"rows": self.rows.get(sql, []), "rowsAffected": 0}))
        if self.truncate_replies is not None:
            replies = replies[: self.truncate_replies]
        return replies


@pytest.fixture
def fake_bridge():
    return ScriptedBridge()


@pytest.fixture
def sessions(fake_bridge):
    return SessionManager(fake_bridge)


@pytest_asyncio.fixture
async def open_db(sessions):
    res = await sessions.open("t.db", "docs")
    assert res.ok, res.error
    return res.data


@pytest.fixture
def location_dirs(tmp_path):
    dirs = {
        "docs": tmp_path / "Documents",
        "libs": tmp_path / "Library",
        "nosync": tmp_path / "Library" / "LocalDatabase.nosync",
    }
    for path in dirs.values():
        path.mkdir(parents=True, exist_ok=True)
    return dirs


@pytest_asyncio.fixture
async def sqlite_bridge(location_dirs, tmp_path):
    bridge = SqliteBridge(location_dirs, storage_root=tmp_path)
    try:
        yield bridge
    finally:
        await bridge.close_all()
