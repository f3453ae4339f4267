"""
Transaction state machine on top of the stateless batch primitive.

Exclusive transactions are bracketed with BEGIN and exactly one of COMMIT or
ROLLBACK; non-exclusive ones (single statements, read transactions) start with
a `SELECT 1` liveness probe and never send transaction control statements.

Lifecycle: BUILDING -> EXECUTING (looped while handlers queue statements)
-> FINALIZING -> FINALIZED. Every transaction ends with exactly one terminal
notification: `success()` or `error(err)`, mirrored into `future`.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from ...config import MAX_BATCH_ROUNDS
from ...shared import ErrorCode, Result, SQLError, db_name_var, get_logger, new_sql_error
from txq_shared.types import INVALID_STATE_ERR
from ...adapters.bridge.sql_utils import coerce_sql, is_read_only_violation
from .batch import BatchSender
from .results import ResultSet
from .statement import Statement, StatementErrorHandler, StatementHandler

if TYPE_CHECKING:
    from .lock import TransactionLock

logger = get_logger(__name__)

TransactionCallback = Callable[["Transaction"], Any]
ErrorCallback = Callable[[SQLError], Any]
SuccessCallback = Callable[[], Any]


class TxState(str, Enum):
    BUILDING = "building"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


class Transaction:
    """
    A unit of work queued on a database lock.

    Args:
        db_name: name of the owning database
        lock: the database lock; released exactly once on finalization
        sender: batch sender bound to the execution bridge
        fn: build callback, called with this transaction to queue statements
        error: transaction-level error callback
        success: transaction-level success callback
        exclusive: bracket with BEGIN/COMMIT/ROLLBACK
        read_only: reject mutating statements before they reach the bridge
        future: optional future resolved with the terminal Result
    """

    def __init__(
        self,
        db_name: str,
        lock: "TransactionLock",
        sender: BatchSender,
        fn: TransactionCallback,
        error: Optional[ErrorCallback] = None,
        success: Optional[SuccessCallback] = None,
        *,
        exclusive: bool = True,
        read_only: bool = False,
        max_rounds: Optional[int] = None,
        future: Optional["asyncio.Future[Result[None]]"] = None,
    ):
        if not callable(fn):
            raise SQLError("transaction expected a function", kind=ErrorCode.INVALID_INPUT)

        self.db_name = db_name
        self.exclusive = bool(exclusive)
        self.read_only = bool(read_only)
        self.finalized = False
        self.state = TxState.BUILDING
        self.future = future
        self._lock = lock
        self._sender = sender
        self._fn = fn
        self._on_error = error
        self._on_success = success
        self._max_rounds = max(1, int(max_rounds if max_rounds is not None else MAX_BATCH_ROUNDS))
        self._rounds = 0
        self._pending: list[Statement] = []
        self._completed = False
        self._task: Optional[asyncio.Task[None]] = None

        if self.exclusive:
            self.add_statement("BEGIN", [], None, self._begin_failed)
        else:
            self.add_statement("SELECT 1", [], None, None)

    @staticmethod
    def _begin_failed(_tx: "Transaction", err: SQLError) -> bool:
        raise SQLError(f"unable to begin transaction: {err.message}", err.code, err.kind)

    @property
    def pending_statements(self) -> list[Statement]:
        return list(self._pending)

    @property
    def rounds(self) -> int:
        return self._rounds

    # Statement intake

    def execute_sql(
        self,
        sql: Any,
        params: Any = None,
        on_success: Optional[StatementHandler] = None,
        on_error: Optional[StatementErrorHandler] = None,
    ) -> None:
        """Queue a statement; it is sent with the next batch of this transaction."""
        if self.finalized:
            raise SQLError(
                "InvalidStateError: This transaction is already finalized.",
                INVALID_STATE_ERR,
                ErrorCode.ALREADY_FINALIZED,
            )

        if self.read_only and is_read_only_violation(coerce_sql(sql)):
            self.handle_statement_failure(
                on_error,
                SQLError("invalid sql for a read-only transaction", kind=ErrorCode.READ_ONLY_VIOLATION),
            )
            return

        self.add_statement(sql, params, on_success, on_error)

    def add_statement(
        self,
        sql: Any,
        params: Any,
        on_success: Optional[StatementHandler],
        on_error: Optional[StatementErrorHandler],
    ) -> None:
        self._pending.append(Statement.build(sql, params, on_success, on_error))

    # Result handling

    def handle_statement_success(self, handler: Optional[StatementHandler], payload: Any) -> None:
        if handler is None:
            return
        handler(self, ResultSet.from_payload(payload))

    def handle_statement_failure(self, handler: Optional[StatementErrorHandler], error: SQLError) -> None:
        """Run a statement error handler; anything but an explicit False fails the transaction."""
        if handler is None:
            raise SQLError(f"a statement with no error handler failed: {error.message}", error.code, error.kind)

        if handler(self, error) is not False:
            raise SQLError(
                f"a statement error callback did not return false: {error.message}",
                error.code,
                error.kind,
            )

    # Execution

    def start(self) -> None:
        """Called by the lock on admission: collect statements, then send them."""
        self.state = TxState.EXECUTING
        try:
            self._fn(self)
        except SQLError as exc:
            self._fail_before_run(exc)
            return
        except Exception as exc:
            self._fail_before_run(new_sql_error(exc, kind=ErrorCode.TX_CALLBACK_THREW))
            return
        self.run()

    def _fail_before_run(self, failure: SQLError) -> None:
        logger.debug("Transaction callback failed on %s: %s", self.db_name, failure.message)
        self.finalized = True
        self._pending = []
        self._done(failure)

    def run(self) -> None:
        """Send every pending statement as one batch."""
        statements = self._pending
        self._pending = []
        if not self.finalized:
            self._rounds += 1
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_batch(statements))
        self._task.add_done_callback(self._log_task_failure)

    def _log_task_failure(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Batch round on %s crashed", self.db_name, exc_info=exc)
            self.finalized = True
            self._pending = []
            self._done(new_sql_error(exc))

    async def _run_batch(self, statements: list[Statement]) -> None:
        token = db_name_var.set(self.db_name)
        try:
            outcomes = await self._sender.send(self.db_name, statements)
            failure = self._sender.dispatch(self, statements, outcomes)
            self._after_batch(failure)
        finally:
            db_name_var.reset(token)

    def _after_batch(self, failure: Optional[SQLError]) -> None:
        if failure is not None:
            self._pending = []
            self.abort(failure)
        elif self._pending:
            if self._rounds >= self._max_rounds:
                self._pending = []
                logger.warning(
                    "Transaction on %s exceeded %d batch rounds; rolling back", self.db_name, self._max_rounds
                )
                self.abort(
                    SQLError(
                        f"transaction exceeded the maximum of {self._max_rounds} batch rounds",
                        kind=ErrorCode.TOO_MANY_ROUNDS,
                    )
                )
            else:
                self.run()
        else:
            self.finish()

    # Finalization

    def abort(self, failure: SQLError) -> None:
        """Roll back (exclusive only) and report the original failure."""
        if self.finalized:
            return
        self.finalized = True
        self.state = TxState.FINALIZING

        if not self.exclusive:
            self._done(failure)
            return

        def rolled_back(_tx: "Transaction", _result: ResultSet) -> None:
            self._done(failure)

        def rollback_failed(_tx: "Transaction", err: SQLError) -> bool:
            logger.warning("ROLLBACK failed on %s: %s", self.db_name, err.message)
            self._done(failure)
            return False

        self.add_statement("ROLLBACK", [], rolled_back, rollback_failed)
        self.run()

    def finish(self) -> None:
        """Commit (exclusive only) and report success or the commit failure."""
        if self.finalized:
            return
        self.finalized = True
        self.state = TxState.FINALIZING

        if not self.exclusive:
            self._done(None)
            return

        def committed(_tx: "Transaction", _result: ResultSet) -> None:
            self._done(None)

        def commit_failed(_tx: "Transaction", err: SQLError) -> bool:
            self._done(err)
            return False

        self.add_statement("COMMIT", [], committed, commit_failed)
        self.run()

    def abort_from_queue(self, error: SQLError) -> None:
        """Fail a transaction that was never admitted; the lock is not touched."""
        self.finalized = True
        self._pending = []
        if self._completed:
            return
        self._completed = True
        self.state = TxState.FINALIZED
        self._notify_error(error)

    def _done(self, failure: Optional[SQLError]) -> None:
        if self._completed:
            return
        self._completed = True
        self.state = TxState.FINALIZED
        self._lock.release()
        if failure is None:
            self._notify_success()
        else:
            self._notify_error(failure)

    def _notify_success(self) -> None:
        if self._on_success is not None:
            try:
                self._on_success()
            except Exception:
                logger.exception("Transaction success callback raised on %s", self.db_name)
        self._resolve(Result.Ok(None))

    def _notify_error(self, error: SQLError) -> None:
        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:
                logger.exception("Transaction error callback raised on %s", self.db_name)
        self._resolve(Result.Err(error.kind, error.message, sql_code=error.code))

    def _resolve(self, result: Result[None]) -> None:
        if self.future is not None and not self.future.done():
            self.future.set_result(result)
