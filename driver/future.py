from __future__ import annotations
import asyncio
from logging import Logger, getLogger as logging_getLogger
from typing import TYPE_CHECKING, Optional

from .exceptions import QueryError, StateError
from .handles import HandleKind, HandleRegistry, OwnedResource
from .result import QueryResult
from .types import PendingState

if TYPE_CHECKING:
    from .transaction import Transaction


def retrieve_exception(task: asyncio.Task) -> None:
    """Done-callback marking a task's exception as retrieved; resolve() re-raises it later."""
    if not task.cancelled():
        task.exception()


class PendingQuery(OwnedResource):
    """
    Handle for a query submitted with `Transaction.query_async`.

    The query runs as an asyncio task from the moment it is submitted.
    `is_ready()` polls without suspending, `resolve()` is the single point
    where the caller waits. Exactly one of a successful resolve, a failing
    resolve or an abort terminates the handle.
    """
    _kind = HandleKind.PENDING_QUERY

    def __init__(
        self,
        transaction: Transaction,
        query: str,
        task: asyncio.Task,
        *,
        registry: Optional[HandleRegistry] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.transaction = transaction
        self.query = query
        self.logger = logger or logging_getLogger(__name__)
        self._task = task
        self._final: Optional[PendingState] = None
        self._resolving = False
        self._cancel_reason: Optional[str] = None
        super().__init__(registry)

    @property
    def state(self) -> PendingState:
        if self._final is not None:
            return self._final
        return PendingState.READY if self._task.done() else PendingState.PENDING

    def is_ready(self) -> bool:
        """True when a result or an error is waiting to be resolved."""
        return self._final is None and self._task.done()

    async def resolve(self) -> QueryResult:
        """
        Wait for the query and take ownership of its result.

        Raises:
            StateError: If the handle was already resolved, aborted or is being resolved.
            QueryError: If the query failed, was aborted meanwhile, or was
                cancelled because its transaction closed.
        """
        if self._final is not None:
            raise StateError(f"Pending query was already {self._final.value}")
        if self._resolving:
            raise StateError("Pending query is already being resolved")
        self._check_live()

        self._resolving = True
        try:
            await asyncio.wait({self._task})
        except asyncio.CancelledError:
            # The caller gave up waiting; do not leave the query running.
            self.abort()
            raise
        finally:
            self._resolving = False

        if self._final is PendingState.ABORTED:
            raise QueryError("Query was aborted before its result was delivered")

        self._final = PendingState.RESOLVED
        self._finish()

        if self._task.cancelled():
            raise QueryError(f"Query was cancelled: {self._cancel_reason or 'task cancelled'}")
        error = self._task.exception()
        if error is not None:
            raise error
        return QueryResult(self._task.result(), registry=self.registry)

    def abort(self) -> None:
        """
        Request cancellation and consume the handle.

        A result that already arrived is discarded. Aborting a handle that
        is already terminal does nothing.
        """
        if self._final is not None:
            return
        self._final = PendingState.ABORTED
        if not self._task.done():
            self._task.cancel()
            self.logger.debug(f"Aborted in-flight query: {self.query}")
        self._finish()

    def drop(self) -> None:
        """Release the handle without resolving it; an implicit abort if still live."""
        self.abort()

    def _cancel(self, reason: str) -> None:
        # Used by the owning transaction when it stops accepting work. The
        # handle stays with the caller and resolves with QueryError.
        if self._final is None and not self._task.done():
            self._cancel_reason = reason
            self._task.cancel()

    def _finish(self) -> None:
        self._release()
        self.transaction._forget_pending(self)

    def __repr__(self) -> str:
        return f"PendingQuery(state={self.state.value}, query={self.query!r})"
