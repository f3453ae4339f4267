"""
HTTP surface of the bridge service.
"""
from aiohttp import web

from ..adapters.bridge.protocol import ExecutionBridge
from .handlers import register_bridge_routes


def build_bridge_app(bridge: ExecutionBridge) -> web.Application:
    """Create an aiohttp application serving `bridge`."""
    routes = web.RouteTableDef()
    register_bridge_routes(routes, bridge)
    app = web.Application()
    app.add_routes(routes)
    return app


__all__ = ["build_bridge_app", "register_bridge_routes"]
