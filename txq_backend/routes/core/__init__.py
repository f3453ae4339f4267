"""
Core utilities for route handlers.
"""
from .request_json import _read_json
from .response import _json_response

__all__ = ["_json_response", "_read_json"]
