from __future__ import annotations

import argparse
import sys
from pathlib import Path

from aiohttp import web

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from txq_backend.adapters.bridge import SqliteBridge  # noqa: E402
from txq_backend.config import STORAGE_ROOT, initialize_directories, resolve_location_dirs  # noqa: E402
from txq_backend.routes import build_bridge_app  # noqa: E402


def parse_arguments(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve local SQLite databases as an execution bridge over HTTP.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--storage-root", default=str(STORAGE_ROOT), help="Root of the docs/libs/nosync locations.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv if argv is not None else sys.argv[1:])
    root = Path(args.storage_root).expanduser()
    bridge = SqliteBridge(initialize_directories(resolve_location_dirs(root)), storage_root=root)
    app = build_bridge_app(bridge)

    async def _close_bridge(_app: web.Application) -> None:
        await bridge.close_all()

    app.on_cleanup.append(_close_bridge)
    web.run_app(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
