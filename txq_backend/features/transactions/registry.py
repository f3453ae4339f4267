"""
Connection registry: database states and locks keyed by database name.

One registry is owned by each SessionManager, so isolated managers (tests,
multiple bridges) never share scheduling state.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from ...shared import DatabaseState, Result
from .lock import TransactionLock


class ConnectionRegistry:
    def __init__(self) -> None:
        self._states: dict[str, DatabaseState] = {}
        self._locks: dict[str, TransactionLock] = {}
        self._pending_opens: dict[str, "asyncio.Future[Result]"] = {}

    def get_state(self, name: str) -> Optional[DatabaseState]:
        return self._states.get(name)

    def set_state(self, name: str, state: DatabaseState) -> None:
        self._states[name] = state

    def clear_state(self, name: str) -> None:
        self._states.pop(name, None)

    def is_open(self, name: str) -> bool:
        return self._states.get(name) is DatabaseState.OPEN

    def open_names(self) -> list[str]:
        return [name for name, state in self._states.items() if state is DatabaseState.OPEN]

    def lock_for(self, name: str) -> TransactionLock:
        """Return the lock for `name`, creating it on first use."""
        lock = self._locks.get(name)
        if lock is None:
            lock = TransactionLock(name, lambda: self.is_open(name))
            self._locks[name] = lock
        return lock

    def get_lock(self, name: str) -> Optional[TransactionLock]:
        return self._locks.get(name)

    def in_progress(self, name: str) -> bool:
        lock = self._locks.get(name)
        return bool(lock is not None and lock.in_progress)

    def pending_open(self, name: str) -> Optional["asyncio.Future[Result]"]:
        return self._pending_opens.get(name)

    def set_pending_open(self, name: str, future: "asyncio.Future[Result]") -> None:
        self._pending_opens[name] = future

    def clear_pending_open(self, name: str) -> None:
        self._pending_opens.pop(name, None)

    def reset(self) -> None:
        self._states.clear()
        self._locks.clear()
        self._pending_opens.clear()
