from __future__ import annotations
import asyncio
from logging import Logger, getLogger as logging_getLogger
from typing import TYPE_CHECKING, Dict, Optional, Type, Union

from .exceptions import QueryError, StateError, TransactionError
from .future import PendingQuery, retrieve_exception
from .handles import HandleKind, OwnedResource
from .options import QueryOptions, QuerySettings, TransactionOptions, TransactionSettings, resolve_snapshot
from .result import QueryResult
from .types import TransactionState, TransactionType
from ..log import ExecutionLog
from ..transport.base import TransactionChannel, TransportError

if TYPE_CHECKING:
    from .connection import Connection


class Transaction(OwnedResource):
    """
    A unit of work on one database of one connection.

    State machine: OPEN -> COMMITTED | ROLLED_BACK | CLOSED, one way. Only an
    OPEN transaction accepts queries. Queries submitted through
    `query_async` reach the server in submission order; commit and rollback
    queue behind queries already submitted.

    Use as an async context manager to commit write/schema work on a clean
    exit, roll back on an exception and always release the handle.
    """
    _kind = HandleKind.TRANSACTION

    def __init__(
        self,
        connection: Connection,
        database: str,
        kind: TransactionType,
        settings: TransactionSettings,
        channel: TransactionChannel,
        logger: Optional[Logger] = None,
    ) -> None:
        self.connection = connection
        self.database = database
        self.kind = kind
        self.settings = settings
        self.logger = logger or logging_getLogger(__name__)
        self._channel = channel
        self._state = TransactionState.OPEN
        self._close_reason: Optional[str] = None
        self._pending: Dict[PendingQuery, None] = {}
        self._tail: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None
        super().__init__(connection.registry)
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + settings.timeout
        self._timeout_handle: Optional[asyncio.TimerHandle] = loop.call_later(settings.timeout, self._on_timeout)

    @classmethod
    async def open(
        cls,
        connection: Connection,
        database: str,
        kind: Union[TransactionType, int, str],
        options: Optional[TransactionOptions] = None,
    ) -> Transaction:
        """
        Open a transaction on `database`.

        Raises:
            StateError: If the connection is closed.
            TransactionError: If the server rejects the transaction, e.g. the
                database does not exist or the schema lock timed out.
            ValueError: If `kind` names no transaction type.
        """
        connection._require_open("open a transaction")
        kind = TransactionType.coerce(kind)
        settings = resolve_snapshot(options, TransactionOptions, "Transaction options")

        try:
            channel = await connection._session.open_transaction(database, kind, settings)
        except TransportError as e:
            connection.logger.error(f"Failed to open {kind.label} transaction on {database}: {e}")
            raise TransactionError(f"Failed to open {kind.label} transaction on '{database}': {e}") from e

        if not connection.is_open():
            # Connection closed while the transaction was being opened.
            await channel.close()
            raise StateError("Connection was closed while the transaction was opening")

        txn = cls(connection, database, kind, settings, channel, connection.logger)
        connection._track(txn)
        connection.logger.info(f"BEGIN {kind.label} transaction on {connection.address}/{database}")
        await connection._record(ExecutionLog(connection.address, database, "begin", kind.label))
        return txn

    # State

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def close_reason(self) -> Optional[str]:
        return self._close_reason

    @property
    def pending(self) -> tuple[PendingQuery, ...]:
        return tuple(self._pending)

    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN and not self.released and self._channel.is_open()

    def _require_open(self, action: str) -> None:
        self._check_live()
        if self._state is not TransactionState.OPEN:
            reason = f" ({self._close_reason})" if self._close_reason else ""
            raise StateError(f"Cannot {action}: transaction is {self._state.value}{reason}")

    def _end(self, state: TransactionState, reason: Optional[str] = None) -> None:
        self._state = state
        self._close_reason = reason
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _cancel_pending(self, reason: str) -> None:
        for pending in list(self._pending):
            pending._cancel(reason)

    def _forget_pending(self, pending: PendingQuery) -> None:
        self._pending.pop(pending, None)

    async def _discard_channel(self) -> None:
        try:
            await self._channel.close()
        except TransportError as e:
            self.logger.warning(f"Failed to release transaction on {self.database}: {e}")

    @property
    def _timeout_reason(self) -> str:
        return f"timeout of {self.settings.timeout}s exceeded"

    def _abandon(self, reason: str) -> None:
        # Release without talking to the server, for when closing it did not
        # finish in time.
        if self.released:
            return
        if self._state is TransactionState.OPEN:
            self._end(TransactionState.CLOSED, reason)
        self._cancel_pending(reason)
        if self._closer is not None and not self._closer.done():
            self._closer.cancel()
        self._closer = None
        self.connection._untrack(self)
        self._release()

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._state is not TransactionState.OPEN:
            return
        reason = self._timeout_reason
        self._end(TransactionState.CLOSED, reason)
        self.logger.warning(f"Transaction on {self.database} closed: {reason}")
        self._cancel_pending(reason)
        self._closer = asyncio.ensure_future(self._discard_channel())

    # Queries

    async def _drain(self) -> None:
        """Wait until every query submitted so far has finished."""
        tail = self._tail
        if tail is not None and not tail.done():
            await asyncio.wait({tail})

    async def _execute(self, query: str, settings: QuerySettings, previous: Optional[asyncio.Task]) -> bytes:
        # Each query starts only after the one submitted before it, so the
        # channel sees submission order.
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            data = await self._channel.query(query, settings)
        except TransportError as e:
            self.logger.error(f"Query failed on {self.database}: {e}")
            raise QueryError(str(e)) from e
        await self.connection._record(
            ExecutionLog(self.connection.address, self.database, "query", query, f"{len(data)} bytes")
        )
        return data

    def query_async(self, query: str, options: Optional[QueryOptions] = None) -> PendingQuery:
        """
        Submit a query without waiting for it.

        Raises:
            StateError: If the transaction is not open. Nothing is submitted.
        """
        self._require_open("query")
        if not isinstance(query, str):
            raise TypeError(f"query must be a string, got {type(query).__name__}")
        settings = resolve_snapshot(options, QueryOptions, "Query options")

        task = asyncio.get_running_loop().create_task(self._execute(query, settings, self._tail))
        task.add_done_callback(retrieve_exception)
        self._tail = task
        pending = PendingQuery(self, query, task, registry=self.registry, logger=self.logger)
        self._pending[pending] = None
        return pending

    async def query(self, query: str, options: Optional[QueryOptions] = None) -> QueryResult:
        """
        Run a query and wait for its result.

        Raises:
            StateError: If the transaction is not open.
            QueryError: If the query fails.
        """
        return await self.query_async(query, options).resolve()

    # Termination

    async def _commit_after_queries(self) -> None:
        await self._drain()
        await self._channel.commit()

    async def commit(self) -> None:
        """
        Durably apply everything done in this transaction.

        On failure the transaction is CLOSED and cannot be retried; open a new one.
        Waiting for submitted queries and the server counts against the
        transaction timeout.

        Raises:
            StateError: If the transaction is not open.
            TransactionError: On conflict or server-side validation failure.
        """
        self._require_open("commit")
        remaining = max(self._deadline - asyncio.get_running_loop().time(), 0)
        self._end(TransactionState.CLOSED, "commit in progress")
        try:
            await asyncio.wait_for(self._commit_after_queries(), timeout=remaining)
        except asyncio.TimeoutError as e:
            reason = self._timeout_reason
            self._close_reason = reason
            self._cancel_pending(reason)
            self.logger.error(f"COMMIT on {self.database} did not finish: {reason}")
            self._closer = asyncio.ensure_future(self._discard_channel())
            raise TransactionError(f"Commit failed on '{self.database}': {reason}") from e
        except TransportError as e:
            self._close_reason = "commit failed"
            self._cancel_pending("transaction commit failed")
            self.logger.error(f"COMMIT failed on {self.database}: {e}")
            raise TransactionError(f"Commit failed on '{self.database}': {e}") from e
        except asyncio.CancelledError:
            self._close_reason = "commit cancelled"
            self._cancel_pending("transaction commit cancelled")
            await self._discard_channel()
            raise
        self._end(TransactionState.COMMITTED)
        self.logger.info(f"COMMIT transaction on {self.connection.address}/{self.database}")
        await self.connection._record(ExecutionLog(self.connection.address, self.database, "commit", "COMMIT"))

    async def rollback(self) -> None:
        """
        Discard everything done in this transaction.

        Allowed on a transaction already closed by a failure (no-op), not on a
        committed one.

        Raises:
            StateError: If the transaction was committed or released.
            TransactionError: If the server fails to roll back.
        """
        self._check_live()
        if self._state is TransactionState.COMMITTED:
            raise StateError("Cannot roll back: transaction is committed")
        if self._state is not TransactionState.OPEN:
            return
        self._end(TransactionState.CLOSED, "rollback in progress")
        self._cancel_pending("transaction rolled back")
        try:
            await self._channel.rollback()
        except TransportError as e:
            self._close_reason = "rollback failed"
            self.logger.error(f"ROLLBACK failed on {self.database}: {e}")
            raise TransactionError(f"Rollback failed on '{self.database}': {e}") from e
        except asyncio.CancelledError:
            self._close_reason = "rollback cancelled"
            await self._discard_channel()
            raise
        self._end(TransactionState.ROLLED_BACK)
        self.logger.info(f"ROLLBACK transaction on {self.connection.address}/{self.database}")
        await self.connection._record(ExecutionLog(self.connection.address, self.database, "rollback", "ROLLBACK"))

    async def close(self) -> None:
        """
        Release the transaction. An OPEN transaction is rolled back implicitly.

        Always succeeds; server-side failures are logged. Closing twice does nothing.
        """
        if self.released:
            return
        if self._state is TransactionState.OPEN:
            self._end(TransactionState.CLOSED, "closed")
            self._cancel_pending("transaction closed")
        if self._closer is not None:
            await self._closer
            self._closer = None
        elif self._channel.is_open():
            await self._discard_channel()
        self.connection._untrack(self)
        self._release()

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(self, exc_type: Optional[Type[BaseException]],
                        exc_val: Optional[BaseException], exc_tb) -> None:
        try:
            if self.is_open():
                if exc_type is not None:
                    await self.rollback()
                elif self.kind is not TransactionType.READ:
                    await self.commit()
        finally:
            await self.close()

    def __repr__(self) -> str:
        return (f"Transaction(database={self.database!r}, kind={self.kind.label}, "
                f"state={self._state.value})")
