"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""
from pathlib import Path
from typing import Optional

from .adapters.bridge import HttpBridge, SqliteBridge
from .config import STORAGE_ROOT, initialize_directories, resolve_location_dirs
from .features.transactions import ConnectionRegistry, SessionManager
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)


def _build_local_bridge(storage_root: Path) -> Result[SqliteBridge]:
    try:
        dirs = initialize_directories(resolve_location_dirs(storage_root))
    except OSError as exc:
        logger.error("Failed to initialize storage directories: %s", exc)
        return Result.Err(ErrorCode.OPEN_FAILED, f"Failed to initialize storage directories: {exc}")
    return Result.Ok(SqliteBridge(dirs, storage_root=storage_root))


async def build_services(
    storage_root: Optional[str | Path] = None,
    *,
    bridge_url: Optional[str] = None,
    max_rounds: Optional[int] = None,
) -> Result[dict]:
    """
    Build the bridge and the session manager.

    Args:
        storage_root: root of the local storage locations (default: config.STORAGE_ROOT)
        bridge_url: when set, talk to a remote bridge service instead of local SQLite files
        max_rounds: cap on handler-driven batch rounds per transaction

    Returns:
        Result[dict] with "bridge" and "sessions"
    """
    logger.info("Building services...")
    if bridge_url:
        bridge = HttpBridge(bridge_url)
    else:
        root = Path(storage_root) if storage_root is not None else STORAGE_ROOT
        bridge_res = _build_local_bridge(root)
        if not bridge_res.ok:
            return Result.Err(bridge_res.code, bridge_res.error or "Failed to build bridge")
        bridge = bridge_res.data

    sessions = SessionManager(bridge, ConnectionRegistry(), max_rounds=max_rounds)
    log_success(logger, "Services ready (%s)", type(bridge).__name__)
    return Result.Ok({"bridge": bridge, "sessions": sessions})


async def close_services(services: dict) -> None:
    """Close open databases, then release bridge resources."""
    sessions = services.get("sessions")
    if sessions is not None:
        res = await sessions.close_all()
        if not res.ok:
            logger.warning("Some databases did not close cleanly: %s", res.meta.get("failed"))
    bridge = services.get("bridge")
    if isinstance(bridge, SqliteBridge):
        await bridge.close_all()
    elif isinstance(bridge, HttpBridge):
        await bridge.aclose()
