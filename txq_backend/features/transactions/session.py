"""
Database sessions: open/close lifecycle per database name and the
transaction entry points (`transaction`, `read_transaction`, `execute_sql`,
`sql_batch`).

Every entry point enqueues synchronously, in call order, and returns a future
resolved with a `Result` once the transaction reaches its terminal state.
Nothing here raises to callers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ...adapters.bridge.protocol import ExecutionBridge
from ...shared import DatabaseState, ErrorCode, Result, SQLError, get_logger, log_structured, log_success, new_sql_error
from txq_shared.types import DEFAULT_LOCATION
from .batch import BatchSender
from .registry import ConnectionRegistry
from .results import ResultSet
from .transaction import ErrorCallback, SuccessCallback, Transaction, TransactionCallback

logger = get_logger(__name__)


def _err(error: SQLError) -> Result[Any]:
    return Result.Err(error.kind, error.message, sql_code=error.code)


class SessionManager:
    """
    Owns the connection registry and routes transactions to database locks.

    Args:
        bridge: execution bridge used for open/close and batches
        registry: state holder (default: a fresh ConnectionRegistry)
        max_rounds: cap on handler-driven batch rounds per transaction
    """

    def __init__(
        self,
        bridge: ExecutionBridge,
        registry: Optional[ConnectionRegistry] = None,
        *,
        max_rounds: Optional[int] = None,
    ):
        self.bridge = bridge
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.sender = BatchSender(bridge)
        self._max_rounds = max_rounds

    def database(self, name: str, location: str = DEFAULT_LOCATION) -> "Database":
        """Return a handle for `name` without opening it."""
        return Database(self, name, location)

    # Lifecycle

    async def open(self, name: str, location: str = DEFAULT_LOCATION) -> Result["Database"]:
        state = self.registry.get_state(name)
        if state is DatabaseState.OPEN:
            logger.debug("database already open: %s", name)
            await asyncio.sleep(0)
            return Result.Ok(Database(self, name, location))

        if state is DatabaseState.INITIALIZING:
            pending = self.registry.pending_open(name)
            if pending is not None:
                return await asyncio.shield(pending)

        self.registry.set_state(name, DatabaseState.INITIALIZING)
        future: asyncio.Future[Result[Database]] = asyncio.get_running_loop().create_future()
        self.registry.set_pending_open(name, future)
        try:
            result = await self._open_on_bridge(name, location)
        except BaseException:
            self.registry.clear_state(name)
            self._abort_queued(name, "cancelled open")
            if not future.done():
                future.set_result(Result.Err(ErrorCode.OPEN_FAILED, "open operation was cancelled"))
            raise
        finally:
            self.registry.clear_pending_open(name)
        if not future.done():
            future.set_result(result)
        return result

    async def _open_on_bridge(self, name: str, location: str) -> Result["Database"]:
        # A native handle may survive from an earlier session; its close outcome is irrelevant.
        try:
            await self.bridge.close(name)
        except Exception as exc:
            logger.debug("Pre-open close of %s ignored: %s", name, exc)

        try:
            await self.bridge.open(name, location)
        except Exception as exc:
            error = new_sql_error(exc)
            self.registry.clear_state(name)
            self._abort_queued(name, "open failure")
            logger.error("Could not open database %s: %s", name, error.message)
            return Result.Err(ErrorCode.OPEN_FAILED, f"could not open database: {error.message}", sql_code=error.code)

        if self.registry.get_state(name) is None:
            logger.warning("database was closed during open operation: %s", name)
            try:
                await self.bridge.close(name)
            except Exception as exc:
                logger.debug("Close after cancelled open of %s failed: %s", name, exc)
            self._abort_queued(name, "close during open")
            return Result.Err(ErrorCode.OPEN_FAILED, "database was closed during open operation")

        self.registry.set_state(name, DatabaseState.OPEN)
        log_success(logger, "Database open: %s", name)

        lock = self.registry.get_lock(name)
        if lock is not None and lock.queue and not lock.in_progress:
            lock.schedule_admission()
        return Result.Ok(Database(self, name, location))

    def _abort_queued(self, name: str, reason: str) -> None:
        """Fail every transaction still queued on `name`; they can never be admitted."""
        lock = self.registry.get_lock(name)
        if lock is None:
            return
        dropped = lock.abort_all(SQLError("Invalid database handle", kind=ErrorCode.INVALID_DATABASE_HANDLE))
        if dropped:
            log_structured(logger, logging.WARNING, "Aborted queued transactions", db=name, dropped=dropped, reason=reason)

    async def close(self, name: str) -> Result[bool]:
        if self.registry.get_state(name) is None:
            # Deferred so the failure is never observed before the caller yields.
            await asyncio.sleep(0)
            return Result.Err(ErrorCode.DATABASE_NOT_OPEN, "cannot close: database is not open")

        if self.registry.in_progress(name):
            return Result.Err(
                ErrorCode.CLOSE_REJECTED_TX_IN_PROGRESS,
                "database cannot be closed while a transaction is in progress",
            )

        if self.registry.get_state(name) is DatabaseState.INITIALIZING:
            # The pending open sees the missing state and closes the bridge handle itself.
            self.registry.clear_state(name)
            logger.info("Database closed before its open completed: %s", name)
            return Result.Ok(True)

        self.registry.clear_state(name)
        try:
            await self.bridge.close(name)
        except Exception as exc:
            error = new_sql_error(exc)
            logger.warning("Close of %s failed on the bridge: %s", name, error.message)
            return Result.Err(ErrorCode.CLOSE_FAILED, error.message, sql_code=error.code)
        logger.info("Database closed: %s", name)
        return Result.Ok(True)

    async def delete_database(self, name: str, location: str = DEFAULT_LOCATION) -> Result[bool]:
        if self.registry.in_progress(name):
            return Result.Err(
                ErrorCode.CLOSE_REJECTED_TX_IN_PROGRESS,
                "database cannot be deleted while a transaction is in progress",
            )
        self.registry.clear_state(name)
        try:
            await self.bridge.delete_database(name, location)
        except Exception as exc:
            error = new_sql_error(exc)
            logger.warning("Delete of %s failed: %s", name, error.message)
            return Result.Err(ErrorCode.DELETE_FAILED, error.message, sql_code=error.code)
        logger.info("Database deleted: %s", name)
        return Result.Ok(True)

    async def is_database_open(self, name: str) -> Result[bool]:
        try:
            return Result.Ok(bool(await self.bridge.is_database_open(name)))
        except Exception as exc:
            error = new_sql_error(exc)
            return Result.Err(ErrorCode.BRIDGE_ERROR, error.message)

    async def close_all(self) -> Result[list[str]]:
        """Close every open database; names that failed to close are reported in meta."""
        closed: list[str] = []
        failed: dict[str, str] = {}
        for name in self.registry.open_names():
            res = await self.close(name)
            if res.ok:
                closed.append(name)
            else:
                failed[name] = res.error or res.code
        if failed:
            return Result.Err(ErrorCode.CLOSE_FAILED, "some databases could not be closed", closed=closed, failed=failed)
        return Result.Ok(closed)

    # Transactions

    def submit(
        self,
        name: str,
        fn: TransactionCallback,
        error: Optional[ErrorCallback] = None,
        success: Optional[SuccessCallback] = None,
        *,
        exclusive: bool,
        read_only: bool,
    ) -> "asyncio.Future[Result[None]]":
        """Build a transaction and put it on the database's queue."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Result[None]] = loop.create_future()

        if self.registry.get_state(name) is None:
            self._fail_later(future, error, SQLError("database not open", kind=ErrorCode.DATABASE_NOT_OPEN))
            return future

        lock = self.registry.lock_for(name)
        try:
            tx = Transaction(
                name,
                lock,
                self.sender,
                fn,
                error,
                success,
                exclusive=exclusive,
                read_only=read_only,
                max_rounds=self._max_rounds,
                future=future,
            )
        except SQLError as exc:
            self._fail_later(future, error, exc)
            return future

        lock.enqueue(tx)
        return future

    @staticmethod
    def _fail_later(
        future: "asyncio.Future[Result[None]]",
        error: Optional[ErrorCallback],
        failure: SQLError,
    ) -> None:
        def _deliver() -> None:
            if error is not None:
                try:
                    error(failure)
                except Exception:
                    logger.exception("Transaction error callback raised")
            if not future.done():
                future.set_result(_err(failure))

        asyncio.get_running_loop().call_soon(_deliver)


class Database:
    """Handle on one named database of a SessionManager."""

    def __init__(self, manager: SessionManager, name: str, location: str = DEFAULT_LOCATION):
        self._manager = manager
        self.name = name
        self.location = location

    def __repr__(self) -> str:
        return f"Database({self.name!r}, location={self.location!r})"

    @property
    def is_open(self) -> bool:
        return self._manager.registry.is_open(self.name)

    async def open(self) -> Result["Database"]:
        return await self._manager.open(self.name, self.location)

    async def close(self) -> Result[bool]:
        return await self._manager.close(self.name)

    def transaction(
        self,
        fn: TransactionCallback,
        error: Optional[ErrorCallback] = None,
        success: Optional[SuccessCallback] = None,
    ) -> "asyncio.Future[Result[None]]":
        return self._manager.submit(self.name, fn, error, success, exclusive=True, read_only=False)

    def read_transaction(
        self,
        fn: TransactionCallback,
        error: Optional[ErrorCallback] = None,
        success: Optional[SuccessCallback] = None,
    ) -> "asyncio.Future[Result[None]]":
        return self._manager.submit(self.name, fn, error, success, exclusive=False, read_only=True)

    def execute_sql(self, sql: str, params: Any = None) -> "asyncio.Future[Result[ResultSet]]":
        """Run one statement outside BEGIN/COMMIT; resolves with its ResultSet."""
        loop = asyncio.get_running_loop()
        out: asyncio.Future[Result[ResultSet]] = loop.create_future()
        captured: dict[str, Any] = {}

        def on_rows(_tx: Transaction, result_set: ResultSet) -> None:
            captured["result_set"] = result_set

        def on_error(_tx: Transaction, err: SQLError) -> bool:
            captured["error"] = err
            return True

        def fn(tx: Transaction) -> None:
            tx.execute_sql(sql, params, on_rows, on_error)

        def _finish(tx_future: "asyncio.Future[Result[None]]") -> None:
            if out.done():
                return
            res = tx_future.result()
            if res.ok:
                out.set_result(Result.Ok(captured.get("result_set") or ResultSet()))
            elif "error" in captured:
                out.set_result(_err(captured["error"]))
            else:
                out.set_result(res)

        tx_future = self._manager.submit(self.name, fn, exclusive=False, read_only=False)
        tx_future.add_done_callback(_finish)
        return out

    def sql_batch(
        self,
        statements: Any,
        error: Optional[ErrorCallback] = None,
        success: Optional[SuccessCallback] = None,
    ) -> "asyncio.Future[Result[None]]":
        """
        Run a list of statements in one exclusive transaction.

        Each element is a SQL string or a `[sql, params]` pair.
        """
        loop = asyncio.get_running_loop()
        invalid = _validate_batch(statements)
        if invalid is not None:
            future: asyncio.Future[Result[None]] = loop.create_future()
            SessionManager._fail_later(future, error, invalid)
            return future

        batch = [
            (st, []) if isinstance(st, str) else (st[0], st[1] if len(st) > 1 and st[1] is not None else [])
            for st in statements
        ]

        def fn(tx: Transaction) -> None:
            for sql, params in batch:
                tx.execute_sql(sql, params)

        return self._manager.submit(self.name, fn, error, success, exclusive=True, read_only=False)


def _validate_batch(statements: Any) -> Optional[SQLError]:
    if not isinstance(statements, (list, tuple)):
        return SQLError("sqlBatch expects an array", kind=ErrorCode.INVALID_INPUT)
    for st in statements:
        if isinstance(st, (list, tuple)):
            if len(st) == 0:
                return SQLError("sqlBatch array element of zero (0) length", kind=ErrorCode.INVALID_INPUT)
        elif not isinstance(st, str):
            return SQLError("sqlBatch array element must be string or array", kind=ErrorCode.INVALID_INPUT)
    return None
