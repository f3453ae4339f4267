"""Transaction queue and lock coordinator."""
from .batch import BatchSender
from .lock import TransactionLock
from .registry import ConnectionRegistry
from .results import Failure, Outcome, ResultSet, RowList, Success
from .session import Database, SessionManager
from .statement import Statement
from .transaction import Transaction, TxState

__all__ = [
    "BatchSender",
    "ConnectionRegistry",
    "Database",
    "Failure",
    "Outcome",
    "ResultSet",
    "RowList",
    "SessionManager",
    "Statement",
    "Success",
    "Transaction",
    "TransactionLock",
    "TxState",
]
