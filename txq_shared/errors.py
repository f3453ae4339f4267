"""
SQL error type shared by the bridge adapters and the transaction core,
plus helpers for sanitizing error messages before they reach clients.
"""
from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from typing import Any

from .log import get_logger
from .types import UNKNOWN_ERR, ErrorCode

logger = get_logger(__name__)
_DEBUG_MODE = os.getenv("TXQ_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
_WINDOWS_PATH_RE = re.compile(r"[A-Za-z]:\\[^\s]+")
_UNIX_PATH_RE = re.compile(r"(?<![A-Za-z0-9:/?&=#%])/(?!/)[^\s#?]+")


class SQLError(Exception):
    """
    A statement or transaction failure.

    `code` is the numeric SQL error code reported by the engine (0 when unknown);
    `kind` classifies the failure for the session surface.
    """

    def __init__(self, message: str, code: int = UNKNOWN_ERR, kind: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.kind = kind or ErrorCode.STATEMENT_FAILED

    def __repr__(self) -> str:
        return f"SQLError(code={self.code}, kind={self.kind.value}, message={self.message!r})"

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


def _coerce_code(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def new_sql_error(error: Any, code: int | None = None, kind: ErrorCode | None = None) -> SQLError:
    """
    Normalize whatever a bridge, handler or callback produced into an SQLError.

    An existing SQLError keeps its message; `code` and `kind` override it only
    when given explicitly.
    """
    if isinstance(error, SQLError):
        return SQLError(
            error.message,
            error.code if code is None else code,
            kind or error.kind,
        )

    fallback_code = UNKNOWN_ERR if code is None else code
    if error is None:
        return SQLError("a plugin had an error but provided no response", fallback_code, kind)
    if isinstance(error, str):
        return SQLError(error, fallback_code, kind)
    if isinstance(error, Mapping):
        message = error.get("message")
        if message:
            raw_code = error.get("code") if code is None else code
            return SQLError(str(message), _coerce_code(raw_code, UNKNOWN_ERR), kind)
        try:
            dumped = json.dumps(dict(error), default=str)
        except (TypeError, ValueError):
            dumped = repr(error)
        return SQLError(f"an unknown error was returned: {dumped}", fallback_code, kind)
    if isinstance(error, BaseException):
        message = str(error)
        if not message:
            return SQLError(f"an unknown error was returned: {type(error).__name__}", fallback_code, kind)
        return SQLError(message, fallback_code, kind)
    return SQLError(f"an unknown error was returned: {error!r}", fallback_code, kind)


def _mask_paths(value: str) -> str:
    """Mask path-looking substrings to avoid leaking filesystem structure."""
    cleaned = _WINDOWS_PATH_RE.sub("[path]", value)
    cleaned = _UNIX_PATH_RE.sub("[path]", cleaned)
    return cleaned


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a safe error message for clients of the bridge service.

    Args:
        exc: Exception or raw value to sanitize.
        fallback: Fallback message to show when nothing meaningful remains.

    Returns:
        A string suitable for inclusion in API responses.
    """
    if not fallback:
        fallback = "An error occurred"

    if exc is None:
        return fallback

    raw = str(exc)
    if not raw:
        return fallback

    sanitized = _mask_paths(raw.replace(os.getcwd(), "[cwd]"))
    sanitized = " ".join(sanitized.splitlines()).strip()

    if _DEBUG_MODE:
        logger.debug("Sanitized error payload: %s", sanitized, exc_info=True)

    if sanitized:
        return f"{fallback}: {sanitized[:200]}"
    return fallback
