from __future__ import annotations
import asyncio
import os
from logging import Logger, getLogger as logging_getLogger
from typing import Dict, List, Optional, Tuple, Type, Union

from .exceptions import ConnectionError, DatabaseError, StateError
from .handles import HandleKind, HandleRegistry, OwnedResource
from .history import HistoryManager
from .options import ConnectionOptions, ConnectionSettings, Credentials, TransactionOptions, resolve_snapshot
from .transaction import Transaction
from .types import TransactionType
from ..async_history_dump import AsyncHistoryDumpGenerator
from ..log import ExecutionLog
from ..transport.base import Session, Transport, TransportError
from ..utils import split_address

DEFAULT_ADDRESS = "localhost:1729"


def _check_database_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise DatabaseError("Database name cannot be empty")
    if name in (".", "..") or any(sep in name for sep in ("/", "\\", os.sep)):
        raise DatabaseError(f"Invalid database name: {name!r}")
    return name


class Connection(OwnedResource):
    """
    An open, authenticated session with one server.

    Catalog operations are serialized on an asyncio.Lock; transactions run
    concurrently on their own channels. Closing the connection closes every
    transaction still open on it.

    Example:
        >>> async with await connect("localhost:1729", Credentials("admin", "password")) as conn:
        ...     await conn.create_database("test")
        ...     async with await conn.transaction("test", TransactionType.WRITE) as tx:
        ...         await tx.query("CREATE TABLE entity (id INTEGER PRIMARY KEY)")
    """
    _kind = HandleKind.CONNECTION

    def __init__(
        self,
        address: str,
        username: str,
        settings: ConnectionSettings,
        session: Session,
        *,
        registry: Optional[HandleRegistry] = None,
        logger: Optional[Logger] = None,
        history: Optional[HistoryManager] = None,
    ) -> None:
        self.address = address
        self.username = username
        self.settings = settings
        self.logger = logger or logging_getLogger(__name__)
        self.history = history if history is not None else HistoryManager()
        self._session = session
        self._lock = asyncio.Lock()
        self._transactions: Dict[Transaction, None] = {}
        self._closed = False
        super().__init__(registry)

    @classmethod
    async def open(
        cls,
        address: str,
        credentials: Credentials,
        options: Optional[ConnectionOptions] = None,
        *,
        transport: Optional[Transport] = None,
        registry: Optional[HandleRegistry] = None,
        logger: Optional[Logger] = None,
        history_length: Optional[int] = 10,
        history_tolerance: Optional[int] = 5,
        history_dump_generator: Optional[AsyncHistoryDumpGenerator] = None,
    ) -> Connection:
        """
        Open a connection to `address` ("host:port").

        The credentials and options are copied; dropping them afterwards does
        not affect the connection. Nothing is allocated when opening fails.

        Raises:
            ConnectionError: On a malformed address, a network failure or
                rejected credentials.
            StateError: If the credentials or options were already dropped.
        """
        logger = logger or logging_getLogger(__name__)
        try:
            split_address(address)
        except ValueError as e:
            raise ConnectionError(str(e)) from e

        if not isinstance(credentials, Credentials):
            raise TypeError(f"credentials must be Credentials, got {type(credentials).__name__}")
        secret = resolve_snapshot(credentials, Credentials, "Credentials")
        settings = resolve_snapshot(options, ConnectionOptions, "Connection options")
        history = HistoryManager(history_length, history_tolerance, history_dump_generator, logger=logger)

        if transport is None:
            from ..transport.sqlite import SqliteTransport
            transport = SqliteTransport(logger=logger)

        try:
            session = await transport.connect(address, secret, settings)
        except TransportError as e:
            logger.error(f"Failed to connect to {address}: {e}")
            raise ConnectionError(f"Failed to connect to {address}: {e}") from e

        conn = cls(address, secret.username, settings, session, registry=registry, logger=logger, history=history)
        logger.info(f"Connected to {address} as {secret.username}")
        return conn

    # State

    def is_open(self) -> bool:
        return not self._closed and not self.released and self._session.is_open()

    def _require_open(self, action: str) -> None:
        self._check_live()
        if not self.is_open():
            raise StateError(f"Cannot {action}: connection to {self.address} is closed")

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return tuple(self._transactions)

    def _track(self, transaction: Transaction) -> None:
        self._transactions[transaction] = None

    def _untrack(self, transaction: Transaction) -> None:
        self._transactions.pop(transaction, None)

    async def _record(self, item: ExecutionLog) -> None:
        await self.history.append(item)

    async def flush_history(self) -> None:
        """Write buffered history entries through the configured dump generator."""
        await self.history.flush_to_file()

    # Catalog

    async def _catalog(self, operation: str, name: Optional[str], call):
        self._require_open(operation.replace("_", " "))
        async with self._lock:
            try:
                result = await call()
            except TransportError as e:
                target = f" '{name}'" if name is not None else ""
                self.logger.error(f"{operation}{target} failed on {self.address}: {e}")
                raise DatabaseError(f"{operation}{target} failed: {e}") from e
        await self._record(ExecutionLog(self.address, name, operation, None, result))
        return result

    async def list_databases(self) -> List[str]:
        """
        Return the names of all databases on the server, sorted.

        Raises:
            StateError: If the connection is closed.
            DatabaseError: If the server cannot list its databases.
        """
        return await self._catalog("list_databases", None, self._session.list_databases)

    async def create_database(self, name: str) -> None:
        """
        Raises:
            StateError: If the connection is closed.
            DatabaseError: If the name is invalid or the database already exists.
        """
        _check_database_name(name)
        await self._catalog("create_database", name, lambda: self._session.create_database(name))
        self.logger.info(f"Created database {name} on {self.address}")

    async def database_exists(self, name: str) -> bool:
        _check_database_name(name)
        return await self._catalog("database_exists", name, lambda: self._session.contains_database(name))

    async def database_schema(self, name: str) -> str:
        """
        Return the schema definition of a database as text.

        Raises:
            StateError: If the connection is closed.
            DatabaseError: If the database does not exist.
        """
        _check_database_name(name)
        return await self._catalog("database_schema", name, lambda: self._session.database_schema(name))

    async def delete_database(self, name: str) -> None:
        """
        Raises:
            StateError: If the connection is closed.
            DatabaseError: If the database does not exist or is in use.
        """
        _check_database_name(name)
        await self._catalog("delete_database", name, lambda: self._session.delete_database(name))
        self.logger.info(f"Deleted database {name} on {self.address}")

    # Transactions

    async def transaction(
        self,
        database: str,
        kind: Union[TransactionType, int, str] = TransactionType.READ,
        options: Optional[TransactionOptions] = None,
    ) -> Transaction:
        """Open a transaction on `database`. See `Transaction.open`."""
        return await Transaction.open(self, database, kind, options)

    # Termination

    async def _close_transactions(self) -> None:
        for transaction in list(self._transactions):
            await transaction.close()

    async def _close_session(self) -> None:
        try:
            await asyncio.wait_for(self._session.close(), timeout=self.settings.close_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Closing session with {self.address} timed out after {self.settings.close_timeout}s"
            )
        except TransportError as e:
            self.logger.warning(f"Failed to close session with {self.address}: {e}")

    async def close(self) -> None:
        """
        Close every open transaction, then the session.

        Closing the transactions and closing the session each wait at most
        `close_timeout` seconds for the server. The session is closed even when
        the transactions did not finish closing, and the connection and all of
        its transactions are released anyway. Closing twice does nothing.
        """
        if self._closed:
            return
        self._closed = True
        try:
            try:
                await asyncio.wait_for(self._close_transactions(), timeout=self.settings.close_timeout)
            except asyncio.TimeoutError:
                self.logger.warning(
                    f"Closing transactions on {self.address} timed out after {self.settings.close_timeout}s"
                )
            finally:
                await self._close_session()
        finally:
            for transaction in list(self._transactions):
                transaction._abandon("connection closed")
            self._transactions.clear()
            self._release()
        self.logger.info(f"Disconnected from {self.address}")
        await self.flush_history()

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, exc_type: Optional[Type[BaseException]],
                        exc_val: Optional[BaseException], exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"Connection(address={self.address!r}, user={self.username!r}, {state})"


async def connect(
    address: str = DEFAULT_ADDRESS,
    credentials: Optional[Credentials] = None,
    options: Optional[ConnectionOptions] = None,
    **kwargs,
) -> Connection:
    """
    Shortcut for `Connection.open`. Without credentials the server's default
    admin account is used.
    """
    if credentials is None:
        credentials = Credentials("admin", "password", registry=kwargs.get("registry"))
        try:
            return await Connection.open(address, credentials, options, **kwargs)
        finally:
            credentials.drop()
    return await Connection.open(address, credentials, options, **kwargs)
