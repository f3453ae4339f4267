"""Execution bridge adapters."""
from .http_bridge import HttpBridge
from .protocol import BatchItem, BatchReply, ExecutionBridge, error_reply, success_reply
from .sqlite_bridge import SqliteBridge

__all__ = [
    "ExecutionBridge",
    "BatchItem",
    "BatchReply",
    "SqliteBridge",
    "HttpBridge",
    "success_reply",
    "error_reply",
]
