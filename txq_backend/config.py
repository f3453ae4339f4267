"""
Configuration for the SQLite transaction queue.

Values are read from the environment once at import time; helpers are kept
module-level so tests can call them directly with monkeypatched env.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _resolve_storage_root() -> Path:
    env_path = _env_raw("TXQ_STORAGE_ROOT")
    if env_path:
        try:
            return Path(env_path).expanduser().resolve()
        except (OSError, RuntimeError):
            logger.warning("Failed to resolve TXQ_STORAGE_ROOT: %s, using fallback", env_path)
    return (Path.home() / ".txqueue").resolve()


def resolve_location_dirs(storage_root: Path | str | None = None) -> dict[str, Path]:
    """
    Map storage location tags to directories.

    `docs` and `libs` live under the storage root unless overridden; `nosync`
    is a sibling of the library directory that backup tooling should skip.
    """
    root = Path(storage_root).expanduser() if storage_root is not None else _resolve_storage_root()
    docs = Path(_env_raw("TXQ_DOCS_DIR", default=str(root / "Documents")) or "").expanduser()
    libs = Path(_env_raw("TXQ_LIBS_DIR", default=str(root / "Library")) or "").expanduser()
    nosync = Path(_env_raw("TXQ_NOSYNC_DIR", default=str(libs / "LocalDatabase.nosync")) or "").expanduser()
    return {"docs": docs, "libs": libs, "nosync": nosync}


def initialize_directories(location_dirs: dict[str, Path] | None = None) -> dict[str, Path]:
    """Create every location directory; returns the mapping that was created."""
    dirs = location_dirs if location_dirs is not None else resolve_location_dirs()
    for tag, path in dirs.items():
        path.mkdir(parents=True, exist_ok=True)
        logger.debug("Storage location %s -> %s", tag, path)
    return dirs


# Bridge user overrides (bridge_config.json)

def resolve_bridge_config_path(storage_root: Path) -> Path:
    cfg_path_raw = os.getenv("TXQ_BRIDGE_CONFIG_PATH", "").strip()
    return Path(cfg_path_raw).expanduser() if cfg_path_raw else (storage_root / "bridge_config.json")


def read_bridge_config_file(cfg_path: Path) -> Any:
    if not cfg_path.exists() or not cfg_path.is_file():
        return {}
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def maybe_set_config_number(
    out: dict[str, Any],
    data: dict[str, Any],
    key: str,
    *,
    min_value: float,
    cast,
) -> None:
    if key not in data:
        return
    raw = data.get(key)
    if raw is None:
        return
    try:
        out[key] = max(min_value, cast(raw))
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid bridge config value %s=%r", key, raw)


def normalize_bridge_config(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    maybe_set_config_number(out, data, "timeout", min_value=1.0, cast=float)
    maybe_set_config_number(out, data, "busyTimeoutMs", min_value=0, cast=int)
    return out


def load_bridge_config(storage_root: Path) -> dict[str, Any]:
    """
    Load optional bridge overrides from JSON file.

    Path resolution order:
    1) TXQ_BRIDGE_CONFIG_PATH
    2) <storage root>/bridge_config.json
    """
    try:
        data = read_bridge_config_file(resolve_bridge_config_path(storage_root))
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring invalid bridge config: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return normalize_bridge_config(data)


STORAGE_ROOT = _resolve_storage_root()

# Bridge timeouts (seconds)
BRIDGE_TIMEOUT = _env_float(30.0, "TXQ_BRIDGE_TIMEOUT", min_value=1.0, max_value=600.0)
BRIDGE_URL = _env_raw("TXQ_BRIDGE_URL", default="http://127.0.0.1:8765") or "http://127.0.0.1:8765"

# Upper bound on handler-driven batch rounds within one transaction
MAX_BATCH_ROUNDS = _env_int(1000, "TXQ_MAX_BATCH_ROUNDS", min_value=1)

# Bridge service request limits
MAX_JSON_BYTES = _env_int(10 * 1024 * 1024, "TXQ_MAX_JSON_SIZE", min_value=1024)
