"""
Shared types, enums, and constants.
"""
from enum import Enum
from typing import Final, Literal

# Storage location tags understood by the execution bridge
StorageLocation = Literal["docs", "libs", "nosync"]
STORAGE_LOCATIONS: Final[tuple[str, ...]] = ("docs", "libs", "nosync")
DEFAULT_LOCATION: Final[str] = "docs"

# Numeric SQL error codes carried by statement failures
UNKNOWN_ERR: Final[int] = 0
SYNTAX_ERR: Final[int] = 5
CONSTRAINT_ERR: Final[int] = 6
QUOTA_ERR: Final[int] = 10
INVALID_STATE_ERR: Final[int] = 11


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Session lifecycle
    OPEN_FAILED = "OPEN_FAILED"
    CLOSE_FAILED = "CLOSE_FAILED"
    CLOSE_REJECTED_TX_IN_PROGRESS = "CLOSE_REJECTED_TX_IN_PROGRESS"
    DATABASE_NOT_OPEN = "DATABASE_NOT_OPEN"
    DELETE_FAILED = "DELETE_FAILED"
    INVALID_DATABASE_HANDLE = "INVALID_DATABASE_HANDLE"

    # Transaction / statement
    STATEMENT_FAILED = "STATEMENT_FAILED"
    READ_ONLY_VIOLATION = "READ_ONLY_VIOLATION"
    TX_CALLBACK_THREW = "TX_CALLBACK_THREW"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    TOO_MANY_ROUNDS = "TOO_MANY_ROUNDS"

    # Client / transport
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    BRIDGE_ERROR = "BRIDGE_ERROR"


class DatabaseState(str, Enum):
    """Lifecycle of a named database; absence from the registry means closed."""
    INITIALIZING = "INIT"
    OPEN = "OPEN"
