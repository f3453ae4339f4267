"""
Bridge service: exposes an execution bridge over JSON POST endpoints so that
`HttpBridge` clients in other processes can drive it.
"""
from __future__ import annotations

from typing import Any

from aiohttp import web

from ...adapters.bridge.protocol import ExecutionBridge
from ...shared import ErrorCode, Result, SQLError, get_logger, new_sql_error, sanitize_error_message
from txq_shared.types import DEFAULT_LOCATION
from ..core import _json_response, _read_json

logger = get_logger(__name__)


def _require_name(body: dict[str, Any]) -> Result[str]:
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        return Result.Err(ErrorCode.INVALID_INPUT, "Missing dbName")
    return Result.Ok(name)


def _sql_error_response(exc: Exception, fallback: str) -> web.Response:
    error = new_sql_error(exc)
    message = error.message if error.kind is not ErrorCode.BRIDGE_ERROR else sanitize_error_message(exc, fallback)
    return _json_response(Result.Err(error.kind, message, sql_code=error.code))


def register_bridge_routes(routes: web.RouteTableDef, bridge: ExecutionBridge) -> None:
    """Register the bridge endpoints on `routes`."""

    @routes.post("/txq/open")
    async def open_database(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        name = _require_name(body.data or {})
        if not name.ok:
            return _json_response(name)
        location = str((body.data or {}).get("location") or DEFAULT_LOCATION)
        try:
            await bridge.open(name.data, location)
        except SQLError as exc:
            return _sql_error_response(exc, "Failed to open database")
        return _json_response(Result.Ok({"message": "Database opened"}))

    @routes.post("/txq/close")
    async def close_database(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        name = _require_name(body.data or {})
        if not name.ok:
            return _json_response(name)
        try:
            await bridge.close(name.data)
        except SQLError as exc:
            return _sql_error_response(exc, "Failed to close database")
        return _json_response(Result.Ok(True))

    @routes.post("/txq/delete")
    async def delete_database(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        name = _require_name(body.data or {})
        if not name.ok:
            return _json_response(name)
        location = str((body.data or {}).get("location") or DEFAULT_LOCATION)
        try:
            await bridge.delete_database(name.data, location)
        except SQLError as exc:
            return _sql_error_response(exc, "Failed to delete database")
        return _json_response(Result.Ok(True))

    @routes.post("/txq/is-open")
    async def is_database_open(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        name = _require_name(body.data or {})
        if not name.ok:
            return _json_response(name)
        return _json_response(Result.Ok(bool(await bridge.is_database_open(name.data))))

    @routes.post("/txq/batch")
    async def execute_batch(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        name = _require_name(body.data or {})
        if not name.ok:
            return _json_response(name)
        batch = (body.data or {}).get("batch")
        if not isinstance(batch, list):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Invalid arguments"))
        results = await bridge.execute_batch(name.data, batch)
        return _json_response(Result.Ok({"results": results}))
