"""
Per-database lock: FIFO queue of transactions plus an in-progress flag.

At most one transaction per database runs at a time, and transactions are
admitted strictly in enqueue order. Admission is always deferred to the next
event-loop iteration so callers observe asynchronous completion even on
trivially fast paths.
"""
from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Callable

from ...shared import SQLError, get_logger

if TYPE_CHECKING:
    from .transaction import Transaction

logger = get_logger(__name__)


class TransactionLock:
    def __init__(self, db_name: str, is_open: Callable[[], bool]):
        self.db_name = db_name
        self.queue: deque["Transaction"] = deque()
        self.in_progress = False
        self._is_open = is_open

    def __repr__(self) -> str:
        return f"TransactionLock({self.db_name!r}, queued={len(self.queue)}, in_progress={self.in_progress})"

    def enqueue(self, tx: "Transaction") -> None:
        self.queue.append(tx)
        if self._is_open():
            if not self.in_progress:
                self.schedule_admission()
        else:
            logger.debug("Transaction queued on %s until the database is open", self.db_name)

    def schedule_admission(self) -> None:
        asyncio.get_running_loop().call_soon(self.admit_next)

    def admit_next(self) -> None:
        if not self._is_open() or self.in_progress or not self.queue:
            return
        self.in_progress = True
        tx = self.queue.popleft()
        tx.start()

    def release(self) -> None:
        self.in_progress = False
        self.schedule_admission()

    def abort_all(self, error: SQLError) -> int:
        """Fail every queued (never started) transaction; returns how many were dropped."""
        pending = list(self.queue)
        self.queue.clear()
        self.in_progress = False
        for tx in pending:
            tx.abort_from_queue(error)
        return len(pending)
