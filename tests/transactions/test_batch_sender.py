import pytest

from txq_backend.features.transactions import BatchSender, Failure, ResultSet, Statement, Success
from txq_backend.features.transactions.results import outcome_from_reply


def test_outcome_from_reply_tags():
    assert outcome_from_reply({"type": "success", "result": {"rows": []}}) == Success({"rows": []})

    failed = outcome_from_reply({"type": "error", "result": {"code": 6, "message": "constraint failed"}})
    assert isinstance(failed, Failure)
    assert (failed.code, failed.message) == (6, "constraint failed")

    assert isinstance(outcome_from_reply({"type": "maybe"}), Failure)
    assert isinstance(outcome_from_reply("junk"), Failure)


def test_result_set_from_payload():
    rs = ResultSet.from_payload({"rows": [{"a": 1}], "rowsAffected": 2, "insertId": 9})
    assert rs.rows.length == 1 and rs.rows[0] == {"a": 1}
    assert rs.rows_affected == 2 and rs.insert_id == 9

    empty = ResultSet.from_payload(None)
    assert len(empty.rows) == 0 and empty.insert_id is None


def test_statement_build_coerces_sql_and_params():
    st = Statement.build(123, (True, 2))
    assert st.to_item() == {"sql": "123", "params": ["true", 2]}


@pytest.mark.asyncio
async def test_send_returns_one_outcome_per_statement(fake_bridge):
    fake_bridge.fail_sql["bad"] = {"message": "syntax error", "code": 5}
    sender = BatchSender(fake_bridge)

    outcomes = await sender.send("x.db", [Statement.build("SELECT 1"), Statement.build("bad"), Statement.build("SELECT 2")])

    assert [type(o) for o in outcomes] == [Success, Failure, Success]
    assert outcomes[1].message == "syntax error"


@pytest.mark.asyncio
async def test_short_reply_fails_unanswered_statements(fake_bridge):
    fake_bridge.truncate_replies = 1
    sender = BatchSender(fake_bridge)

    outcomes = await sender.send("x.db", [Statement.build("SELECT 1"), Statement.build("SELECT 2")])

    assert isinstance(outcomes[0], Success)
    assert outcomes[1] == Failure(0, "no result returned for statement")


@pytest.mark.asyncio
async def test_bridge_exception_fails_whole_batch(fake_bridge):
    fake_bridge.batch_error = OSError("pipe closed")
    sender = BatchSender(fake_bridge)

    outcomes = await sender.send("x.db", [Statement.build("SELECT 1"), Statement.build("SELECT 2")])

    assert all(isinstance(o, Failure) and o.message == "pipe closed" for o in outcomes)


@pytest.mark.asyncio
async def test_empty_batch_skips_the_bridge(fake_bridge):
    assert await BatchSender(fake_bridge).send("x.db", []) == []
    assert fake_bridge.batches == []
