"""
Execution bridge reached over HTTP.

Talks to a bridge service (see `txq_backend.routes.handlers.bridge`) with JSON
POSTs; every response is a `{ok, data, error, code, meta}` envelope.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

import aiohttp

from ...config import BRIDGE_TIMEOUT, BRIDGE_URL
from ...shared import ErrorCode, SQLError, get_logger
from .protocol import BatchItem, BatchReply

logger = get_logger(__name__)


def _error_kind(code: Any) -> ErrorCode:
    try:
        return ErrorCode(str(code))
    except ValueError:
        return ErrorCode.BRIDGE_ERROR


class HttpBridge:
    """aiohttp client implementing the execution bridge contract."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base_url = str(base_url or BRIDGE_URL).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=float(timeout if timeout is not None else BRIDGE_TIMEOUT))
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _call(self, path: str, payload: dict[str, Any]) -> Any:
        session = await self._get_session()
        url = f"{self._base_url}{path}"
        try:
            async with session.post(url, json=payload) as resp:
                resp.raise_for_status()
                envelope = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Bridge request %s failed: %s", path, exc)
            raise SQLError(f"bridge request failed: {exc}", kind=ErrorCode.BRIDGE_ERROR) from exc

        if not isinstance(envelope, dict):
            raise SQLError("bridge returned a malformed response", kind=ErrorCode.BRIDGE_ERROR)
        if not envelope.get("ok"):
            meta = envelope.get("meta") or {}
            raise SQLError(
                str(envelope.get("error") or "bridge call failed"),
                int(meta.get("sql_code") or 0),
                _error_kind(envelope.get("code")),
            )
        return envelope.get("data")

    async def open(self, name: str, location: str = "docs") -> None:
        await self._call("/txq/open", {"name": name, "location": location})

    async def close(self, name: str) -> None:
        await self._call("/txq/close", {"name": name})

    async def delete_database(self, name: str, location: str = "docs") -> None:
        await self._call("/txq/delete", {"name": name, "location": location})

    async def is_database_open(self, name: str) -> bool:
        return bool(await self._call("/txq/is-open", {"name": name}))

    async def execute_batch(self, name: str, items: list[BatchItem]) -> list[BatchReply]:
        data = await self._call("/txq/batch", {"name": name, "batch": list(items)})
        results = (data or {}).get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SQLError("bridge returned no batch results", kind=ErrorCode.BRIDGE_ERROR)
        return results

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
