"""Route handlers."""
from .bridge import register_bridge_routes

__all__ = ["register_bridge_routes"]
