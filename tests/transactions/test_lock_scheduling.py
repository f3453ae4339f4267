import asyncio

import pytest

from txq_backend.features.transactions import ConnectionRegistry, TransactionLock
from txq_backend.shared import DatabaseState, ErrorCode, SQLError


def _assert_never_interleaved(sent_sql):
    depth = 0
    for sql in sent_sql:
        if sql == "BEGIN":
            assert depth == 0, f"BEGIN while another transaction was active: {sent_sql}"
            depth = 1
        elif sql in ("COMMIT", "ROLLBACK"):
            assert depth == 1
            depth = 0
    assert depth == 0


@pytest.mark.asyncio
async def test_one_transaction_at_a_time_per_database(open_db, fake_bridge):
    fake_bridge.delays["SELECT slow"] = 0.02
    active = {"now": 0, "max": 0}

    def make_fn(i):
        def fn(tx):
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            tx.execute_sql("SELECT slow" if i % 2 == 0 else f"SELECT {i}")
        return fn

    def done(*_args):
        active["now"] -= 1

    futures = [open_db.transaction(make_fn(i), done, done) for i in range(6)]
    results = await asyncio.gather(*futures)

    assert all(r.ok for r in results)
    assert active == {"now": 0, "max": 1}
    _assert_never_interleaved(fake_bridge.sent_sql)


@pytest.mark.asyncio
async def test_transactions_start_in_submission_order(open_db, fake_bridge):
    fake_bridge.delays["SELECT slow"] = 0.01
    order = []

    def make_fn(i):
        def fn(tx):
            order.append(i)
            tx.execute_sql("SELECT slow")
        return fn

    futures = []
    for i in range(5):
        futures.append(open_db.transaction(make_fn(i)) if i % 2 else open_db.read_transaction(make_fn(i)))
    futures.append(open_db.execute_sql("SELECT 5"))
    await asyncio.gather(*futures)

    assert order == [0, 1, 2, 3, 4]
    assert fake_bridge.sent_sql[-2:] == ["SELECT 1", "SELECT 5"]


@pytest.mark.asyncio
async def test_admission_is_deferred(open_db):
    started = []
    fut = open_db.transaction(lambda tx: started.append(True))

    assert started == []
    await asyncio.sleep(0)
    assert started == [True]
    assert (await fut).ok


@pytest.mark.asyncio
async def test_databases_do_not_block_each_other(sessions, fake_bridge):
    a = (await sessions.open("a.db")).data
    b = (await sessions.open("b.db")).data
    fake_bridge.delays["SELECT slow"] = 0.05
    order = []

    slow = a.transaction(lambda tx: tx.execute_sql("SELECT slow"), None, lambda: order.append("a"))
    fast = b.transaction(lambda tx: tx.execute_sql("SELECT fast"), None, lambda: order.append("b"))
    await asyncio.gather(slow, fast)

    assert order == ["b", "a"]


@pytest.mark.asyncio
async def test_transactions_queued_during_open_run_after_it(sessions, fake_bridge):
    fake_bridge.open_delay = 0.01
    opening = asyncio.ensure_future(sessions.open("late.db"))
    await asyncio.sleep(0)
    assert sessions.registry.get_state("late.db") is DatabaseState.INITIALIZING

    db = sessions.database("late.db")
    order = []
    futures = [db.transaction(lambda tx, i=i: order.append(i)) for i in range(3)]
    await asyncio.sleep(0)
    assert order == []

    assert (await opening).ok
    results = await asyncio.gather(*futures)
    assert all(r.ok for r in results)
    assert order == [0, 1, 2]


class _StubTx:
    def __init__(self):
        self.started = False
        self.aborted_with = None

    def start(self):
        self.started = True

    def abort_from_queue(self, error):
        self.aborted_with = error


@pytest.mark.asyncio
async def test_lock_waits_for_open_and_aborts_queue():
    is_open = {"value": False}
    lock = TransactionLock("x.db", lambda: is_open["value"])
    first, second = _StubTx(), _StubTx()
    lock.enqueue(first)
    lock.enqueue(second)
    await asyncio.sleep(0)
    assert not first.started and len(lock.queue) == 2

    error = SQLError("Invalid database handle", kind=ErrorCode.INVALID_DATABASE_HANDLE)
    assert lock.abort_all(error) == 2
    assert first.aborted_with is error and second.aborted_with is error
    assert not lock.queue and lock.in_progress is False


@pytest.mark.asyncio
async def test_lock_admits_one_at_a_time():
    lock = TransactionLock("y.db", lambda: True)
    first, second = _StubTx(), _StubTx()
    lock.enqueue(first)
    lock.enqueue(second)
    await asyncio.sleep(0)
    assert first.started and not second.started
    assert lock.in_progress is True

    lock.release()
    await asyncio.sleep(0)
    assert second.started


def test_registry_creates_locks_lazily():
    registry = ConnectionRegistry()
    assert registry.get_lock("z.db") is None
    lock = registry.lock_for("z.db")
    assert registry.lock_for("z.db") is lock
    assert registry.in_progress("z.db") is False
    registry.set_state("z.db", DatabaseState.OPEN)
    assert registry.open_names() == ["z.db"]
    registry.reset()
    assert registry.get_state("z.db") is None
