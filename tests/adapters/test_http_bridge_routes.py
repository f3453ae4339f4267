import pytest
from aiohttp.test_utils import TestClient, TestServer

from txq_backend.adapters.bridge import HttpBridge
from txq_backend.features.transactions import SessionManager
from txq_backend.routes import build_bridge_app
from txq_backend.shared import ErrorCode, SQLError
from txq_shared.types import SYNTAX_ERR


@pytest.mark.asyncio
async def test_routes_envelope_success_and_errors(sqlite_bridge):
    client = TestClient(TestServer(build_bridge_app(sqlite_bridge)))
    await client.start_server()
    try:
        resp = await client.post("/txq/open", json={"name": "r.db", "location": "docs"})
        payload = await resp.json()
        assert payload["ok"] is True
        assert payload["data"] == {"message": "Database opened"}

        resp = await client.post("/txq/open", json={"location": "docs"})
        payload = await resp.json()
        assert payload["ok"] is False
        assert payload["code"] == "INVALID_INPUT"
        assert payload["error"] == "Missing dbName"

        resp = await client.post("/txq/batch", json={"name": "r.db", "batch": "SELECT 1"})
        payload = await resp.json()
        assert payload["ok"] is False
        assert payload["error"] == "Invalid arguments"

        resp = await client.post(
            "/txq/batch",
            json={"name": "r.db", "batch": [{"sql": "SELECT 1 AS one", "params": []}, {"sql": "nope", "params": []}]},
        )
        payload = await resp.json()
        results = payload["data"]["results"]
        assert results[0] == {"type": "success", "result": {"rows": [{"one": 1}], "rowsAffected": 0}}
        assert results[1]["type"] == "error"
        assert results[1]["result"]["code"] == SYNTAX_ERR

        resp = await client.post("/txq/is-open", json={"name": "r.db"})
        assert (await resp.json())["data"] is True

        resp = await client.post("/txq/close", json={"name": "nope.db"})
        payload = await resp.json()
        assert payload["ok"] is False
        assert payload["code"] == "CLOSE_FAILED"

        resp = await client.post("/txq/open", data=b"{broken", headers={"Content-Type": "application/json"})
        payload = await resp.json()
        assert payload["ok"] is False
        assert payload["code"] == "INVALID_JSON"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_http_bridge_drives_a_remote_session(sqlite_bridge):
    client = TestClient(TestServer(build_bridge_app(sqlite_bridge)))
    await client.start_server()
    bridge = HttpBridge(str(client.make_url("/")))
    try:
        sessions = SessionManager(bridge)
        opened = await sessions.open("remote.db", "docs")
        assert opened.ok, opened.error
        db = opened.data

        res = await db.sql_batch(
            [
                "CREATE TABLE kv (k TEXT PRIMARY KEY, v TEXT)",
                ["INSERT INTO kv VALUES (?, ?)", ["a", "1"]],
            ]
        )
        assert res.ok, res.error

        rows = await db.execute_sql("SELECT k, v FROM kv")
        assert rows.ok
        assert rows.data.rows.item(0) == {"k": "a", "v": "1"}

        assert (await sessions.is_database_open("remote.db")).data is True
        closed = await sessions.close("remote.db")
        assert closed.ok
        assert await sqlite_bridge.is_database_open("remote.db") is False
    finally:
        await bridge.aclose()
        await client.close()


@pytest.mark.asyncio
async def test_http_bridge_raises_sql_error_from_envelope(sqlite_bridge):
    client = TestClient(TestServer(build_bridge_app(sqlite_bridge)))
    await client.start_server()
    bridge = HttpBridge(str(client.make_url("/")))
    try:
        with pytest.raises(SQLError) as exc:
            await bridge.close("never-opened.db")
        assert exc.value.kind is ErrorCode.CLOSE_FAILED
        assert "not open" in exc.value.message
    finally:
        await bridge.aclose()
        await client.close()


@pytest.mark.asyncio
async def test_http_bridge_unreachable_service():
    bridge = HttpBridge("http://127.0.0.1:9", timeout=2.0)
    try:
        with pytest.raises(SQLError) as exc:
            await bridge.open("x.db", "docs")
        assert exc.value.kind is ErrorCode.BRIDGE_ERROR
    finally:
        await bridge.aclose()
