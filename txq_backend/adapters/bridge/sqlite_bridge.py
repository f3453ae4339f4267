"""
aiosqlite-backed execution bridge.

Each named database gets one autocommit connection (`isolation_level=None`),
so BEGIN / COMMIT / ROLLBACK submitted by the transaction core run as ordinary
statements. Statements inside a batch are executed one by one and every one of
them yields its own reply; a failing statement never stops the batch.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from ...config import BRIDGE_TIMEOUT, STORAGE_ROOT, load_bridge_config, resolve_location_dirs
from ...shared import ErrorCode, SQLError, get_logger, log_success
from .protocol import BatchItem, BatchReply, error_reply, success_reply
from .sql_utils import map_sqlite_error_code, rows_to_dicts

logger = get_logger(__name__)

_SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


class SqliteBridge:
    """
    Runs SQL batches against local SQLite files grouped by storage location.

    Args:
        location_dirs: mapping of location tag -> directory (default: from config)
        timeout: sqlite connect timeout in seconds
        busy_timeout_ms: PRAGMA busy_timeout applied to each connection
    """

    def __init__(
        self,
        location_dirs: Optional[dict[str, Path]] = None,
        *,
        storage_root: Optional[Path] = None,
        timeout: Optional[float] = None,
        busy_timeout_ms: Optional[int] = None,
    ):
        root = Path(storage_root) if storage_root is not None else STORAGE_ROOT
        user_config = load_bridge_config(root)
        self._location_dirs = dict(location_dirs) if location_dirs is not None else resolve_location_dirs(root)
        self._timeout = float(timeout if timeout is not None else user_config.get("timeout", BRIDGE_TIMEOUT))
        self._busy_timeout_ms = int(
            busy_timeout_ms
            if busy_timeout_ms is not None
            else user_config.get("busyTimeoutMs", int(self._timeout * 1000))
        )
        self._open_dbs: dict[str, aiosqlite.Connection] = {}

    @property
    def location_dirs(self) -> dict[str, Path]:
        return dict(self._location_dirs)

    def database_path(self, name: str, location: str) -> Path:
        if not name or not isinstance(name, str):
            raise SQLError("Missing database name", kind=ErrorCode.INVALID_INPUT)
        if "/" in name or "\\" in name or name in (".", ".."):
            raise SQLError(f"Invalid database name: {name}", kind=ErrorCode.INVALID_INPUT)
        base = self._location_dirs.get(location)
        if base is None:
            raise SQLError(f"Invalid database location: {location}", kind=ErrorCode.INVALID_INPUT)
        return Path(base) / name

    async def open(self, name: str, location: str = "docs") -> None:
        path = self.database_path(name, location)
        if name in self._open_dbs:
            raise SQLError("database already open", kind=ErrorCode.OPEN_FAILED)

        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("open full db path: %s", path)
        try:
            conn = await aiosqlite.connect(str(path), timeout=self._timeout, isolation_level=None)
        except sqlite3.Error as exc:
            raise SQLError(f"Unable to open DB: {exc}", kind=ErrorCode.OPEN_FAILED) from exc

        conn.row_factory = sqlite3.Row
        try:
            await conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout_ms}")
            await conn.execute("PRAGMA foreign_keys=ON")
            # Test read to ensure the file really is a usable database.
            cursor = await conn.execute("SELECT count(*) FROM sqlite_master")
            try:
                await cursor.fetchall()
            finally:
                await cursor.close()
        except sqlite3.Error as exc:
            await conn.close()
            raise SQLError(f"Unable to open DB: {exc}", kind=ErrorCode.OPEN_FAILED) from exc

        self._open_dbs[name] = conn
        log_success(logger, "Database opened: %s (%s)", name, location)

    async def close(self, name: str) -> None:
        conn = self._open_dbs.pop(name, None)
        if conn is None:
            logger.debug("close: db name was not open: %s", name)
            raise SQLError("Specified db was not open", kind=ErrorCode.CLOSE_FAILED)
        await conn.close()
        logger.info("Database closed: %s", name)

    async def delete_database(self, name: str, location: str = "docs") -> None:
        path = self.database_path(name, location)
        if not path.exists():
            logger.info("delete: db was not found: %s", path)
            raise SQLError("The database does not exist at that path", kind=ErrorCode.DELETE_FAILED)

        conn = self._open_dbs.pop(name, None)
        if conn is not None:
            await conn.close()

        try:
            path.unlink()
            for suffix in _SIDECAR_SUFFIXES:
                sidecar = path.with_name(path.name + suffix)
                if sidecar.exists():
                    sidecar.unlink()
        except OSError as exc:
            logger.error("Error deleting DB %s: %s", path, exc)
            raise SQLError(f"Unable to delete DB: {exc}", kind=ErrorCode.DELETE_FAILED) from exc
        logger.info("Database deleted: %s", path)

    async def is_database_open(self, name: str) -> bool:
        return name in self._open_dbs

    async def execute_batch(self, name: str, items: list[BatchItem]) -> list[BatchReply]:
        conn = self._open_dbs.get(name)
        if conn is None:
            return [
                error_reply("INTERNAL PLUGIN ERROR: No such database, you must open it first")
                for _ in items
            ]
        replies: list[BatchReply] = []
        for item in items:
            replies.append(await self._execute_item(conn, item))
        return replies

    async def close_all(self) -> None:
        conns = list(self._open_dbs.items())
        self._open_dbs.clear()
        for name, conn in conns:
            try:
                await conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close %s: %s", name, exc)

    async def _execute_item(self, conn: aiosqlite.Connection, item: Any) -> BatchReply:
        sql = item.get("sql") if isinstance(item, dict) else None
        if not isinstance(sql, str):
            return error_reply("INTERNAL PLUGIN ERROR: You must specify a sql query to execute")
        params = item.get("params") or []

        try:
            cursor = await conn.execute(sql, params)
            try:
                rows = await cursor.fetchall()
                last_id = cursor.lastrowid
                rowcount = cursor.rowcount
            finally:
                await cursor.close()
        except sqlite3.Error as exc:
            return error_reply(
                str(exc),
                map_sqlite_error_code(exc),
                sqliteCode=getattr(exc, "sqlite_errorcode", None),
            )

        # rowcount is -1 for statements that do not modify rows
        rows_affected = max(int(rowcount or 0), 0)
        payload: dict[str, Any] = {"rows": rows_to_dicts(rows), "rowsAffected": rows_affected}
        if rows_affected > 0 and last_id:
            payload["insertId"] = last_id
        return success_reply(payload)
