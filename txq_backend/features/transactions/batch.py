"""
Batch sender: one round trip per list of statements, replies demultiplexed
back to each statement's handlers in submission order.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ...adapters.bridge.protocol import ExecutionBridge
from ...shared import ErrorCode, SQLError, get_logger, new_sql_error
from .results import Failure, Outcome, Success, outcome_from_reply
from .statement import Statement

if TYPE_CHECKING:
    from .transaction import Transaction

logger = get_logger(__name__)


class BatchSender:
    def __init__(self, bridge: ExecutionBridge):
        self._bridge = bridge

    async def send(self, db_name: str, statements: list[Statement]) -> list[Outcome]:
        """
        Submit `statements` as one batch and return exactly one outcome per statement.

        A bridge that raises fails every statement of the batch; a short reply
        fails the statements it did not answer.
        """
        if not statements:
            return []
        items = [s.to_item() for s in statements]
        try:
            replies = await self._bridge.execute_batch(db_name, items)
        except Exception as exc:
            err = new_sql_error(exc)
            logger.warning("Batch of %d statement(s) failed on the bridge: %s", len(items), err.message)
            return [Failure(err.code, err.message) for _ in statements]

        if not isinstance(replies, list):
            replies = []
        if len(replies) != len(statements):
            logger.warning("Bridge answered %d of %d statement(s)", len(replies), len(statements))

        outcomes: list[Outcome] = []
        for index in range(len(statements)):
            if index < len(replies):
                outcomes.append(outcome_from_reply(replies[index]))
            else:
                outcomes.append(Failure(0, "no result returned for statement"))
        return outcomes

    @staticmethod
    def dispatch(tx: "Transaction", statements: list[Statement], outcomes: list[Outcome]) -> Optional[SQLError]:
        """
        Deliver outcomes to statement handlers in order.

        Returns the first failure raised while handling, after which the
        remaining handlers are skipped.
        """
        for statement, outcome in zip(statements, outcomes):
            try:
                if isinstance(outcome, Success):
                    tx.handle_statement_success(statement.on_success, outcome.payload)
                else:
                    tx.handle_statement_failure(statement.on_error, new_sql_error(outcome.as_error_payload()))
            except SQLError as exc:
                return exc
            except Exception as exc:
                return new_sql_error(exc, kind=ErrorCode.TX_CALLBACK_THREW)
        return None
