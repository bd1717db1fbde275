"""
Local reference transport backed by SQLite files through aiosqlite.

Every address maps to a directory under the base directory, every database
to a `<name>.db` file inside it. Transaction kinds map onto SQLite locking:

    read    PRAGMA query_only, BEGIN DEFERRED
    write   BEGIN DEFERRED (write lock taken on first write)
    schema  BEGIN EXCLUSIVE (write lock taken at open)

The schema lock timeout is the SQLite busy timeout, so a schema transaction
waits that long for competing writers before failing. Query text goes to the
backend unchanged. A database cannot be deleted while any session in the
process holds a transaction on it.
"""
from __future__ import annotations
import asyncio
import os
from logging import Logger, getLogger as logging_getLogger
from pathlib import Path
from typing import Dict, List, Optional, Set

import aiofiles.os
import aiosqlite

from .base import Session, TransactionChannel, Transport, TransportError
from ..driver.options import ConnectionSettings, CredentialSnapshot, QuerySettings, TransactionSettings
from ..driver.result import encode_rows
from ..driver.types import TransactionType
from ..execution_async import run_query
from ..utils import split_address

DATA_DIR_ENV = "ASYNC_DB_DRIVER_DATA_DIR"
DEFAULT_DATA_DIR = os.path.join("~", ".async_db_driver")
DEFAULT_USERS = {"admin": "password"}
DATABASE_SUFFIX = ".db"

_BEGIN_STATEMENTS = {
    TransactionType.READ: "BEGIN DEFERRED",
    TransactionType.WRITE: "BEGIN DEFERRED",
    TransactionType.SCHEMA: "BEGIN EXCLUSIVE",
}

# Open transaction channels per database file, shared by every session and
# transport in the process.
_open_databases: Dict[str, Set["SqliteTransactionChannel"]] = {}


def _database_key(path: str) -> str:
    return os.path.realpath(path)


def _in_use(path: str) -> bool:
    return bool(_open_databases.get(_database_key(path)))


def default_data_dir() -> str:
    return os.path.expanduser(os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR)


def _check_database_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise TransportError("Database name cannot be empty")
    if name in (".", "..") or any(sep in name for sep in ("/", "\\", os.sep)):
        raise TransportError(f"Invalid database name: {name!r}")


class SqliteTransactionChannel(TransactionChannel):
    """
    One SQLite connection holding one open transaction.

    Queries, commit, rollback and close are serialized on an asyncio.Lock.
    asyncio locks are FIFO, so work reaches SQLite in submission order.
    """

    def __init__(
        self,
        session: SqliteSession,
        database: str,
        kind: TransactionType,
        conn: aiosqlite.Connection,
        logger: Optional[Logger] = None,
    ) -> None:
        self.session = session
        self.database = database
        self.path = _database_key(session._path(database))
        self.kind = kind
        self._conn: Optional[aiosqlite.Connection] = conn
        self._lock = asyncio.Lock()
        self.logger = logger or logging_getLogger(__name__)

    def is_open(self) -> bool:
        return self._conn is not None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise TransportError(f"Transaction on '{self.database}' is closed")
        return self._conn

    async def _shutdown(self) -> None:
        conn, self._conn = self._conn, None
        self.session._forget(self)
        channels = _open_databases.get(self.path)
        if channels is not None:
            channels.discard(self)
            if not channels:
                del _open_databases[self.path]
        if conn is not None:
            await conn.close()

    async def query(self, query: str, settings: QuerySettings) -> bytes:
        async with self._lock:
            conn = self._require_conn()
            try:
                cursor = await conn.cursor()
                try:
                    rows = await run_query(
                        cursor,
                        query,
                        return_type=settings.prefetch_size,
                        include_instance_types=settings.include_instance_types,
                        logger=self.logger,
                    )
                finally:
                    await cursor.close()
            except aiosqlite.Error as e:
                raise TransportError(str(e)) from e
            return encode_rows(rows)

    async def commit(self) -> None:
        async with self._lock:
            conn = self._require_conn()
            try:
                await conn.commit()
            except aiosqlite.Error as e:
                raise TransportError(f"Commit failed: {e}") from e
            finally:
                await self._shutdown()

    async def rollback(self) -> None:
        async with self._lock:
            conn = self._require_conn()
            try:
                await conn.rollback()
            except aiosqlite.Error as e:
                raise TransportError(f"Rollback failed: {e}") from e
            finally:
                await self._shutdown()

    async def close(self) -> None:
        async with self._lock:
            if self._conn is None:
                return
            try:
                await self._conn.rollback()
            except aiosqlite.Error as e:
                raise TransportError(f"Rollback on close failed: {e}") from e
            finally:
                await self._shutdown()

    def __repr__(self) -> str:
        return f"SqliteTransactionChannel(database={self.database!r}, kind={self.kind.label}, open={self.is_open()})"


class SqliteSession(Session):
    """Catalog access and transaction factory for one data directory."""

    def __init__(self, root: str, logger: Optional[Logger] = None) -> None:
        self.root = root
        self.logger = logger or logging_getLogger(__name__)
        self._open = True
        self._channels: Set[SqliteTransactionChannel] = set()

    def is_open(self) -> bool:
        return self._open

    def _require_open(self) -> None:
        if not self._open:
            raise TransportError("Session is closed")

    def _path(self, name: str) -> str:
        _check_database_name(name)
        return os.path.join(self.root, f"{name}{DATABASE_SUFFIX}")

    def _forget(self, channel: SqliteTransactionChannel) -> None:
        self._channels.discard(channel)

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        for channel in list(self._channels):
            try:
                await channel.close()
            except TransportError as e:
                self.logger.warning(f"Failed to close {channel!r}: {e}")
        self._channels.clear()

    async def list_databases(self) -> List[str]:
        self._require_open()
        try:
            entries = await aiofiles.os.listdir(self.root)
        except OSError as e:
            raise TransportError(f"Failed to list databases: {e}") from e
        return sorted(
            entry[: -len(DATABASE_SUFFIX)]
            for entry in entries
            if entry.endswith(DATABASE_SUFFIX)
        )

    async def contains_database(self, name: str) -> bool:
        self._require_open()
        return await aiofiles.os.path.isfile(self._path(name))

    async def create_database(self, name: str) -> None:
        self._require_open()
        path = self._path(name)
        if await aiofiles.os.path.exists(path):
            raise TransportError(f"Database '{name}' already exists")
        try:
            async with aiosqlite.connect(path) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                await db.commit()
        except aiosqlite.Error as e:
            raise TransportError(f"Failed to create database '{name}': {e}") from e

    async def database_schema(self, name: str) -> str:
        self._require_open()
        path = self._path(name)
        if not await aiofiles.os.path.isfile(path):
            raise TransportError(f"Database '{name}' does not exist")
        try:
            async with aiosqlite.connect(Path(path).resolve().as_uri() + "?mode=rw", uri=True) as db:
                async with db.execute(
                    "SELECT sql FROM sqlite_master WHERE sql IS NOT NULL ORDER BY rowid"
                ) as cursor:
                    statements = [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error as e:
            raise TransportError(f"Failed to read schema of '{name}': {e}") from e
        return "".join(f"{statement};\n" for statement in statements)

    async def delete_database(self, name: str) -> None:
        self._require_open()
        path = self._path(name)
        if not await aiofiles.os.path.isfile(path):
            raise TransportError(f"Database '{name}' does not exist")
        if _in_use(path):
            raise TransportError(f"Database '{name}' has open transactions")
        try:
            await aiofiles.os.remove(path)
            for suffix in ("-wal", "-shm"):
                if await aiofiles.os.path.exists(path + suffix):
                    await aiofiles.os.remove(path + suffix)
        except OSError as e:
            raise TransportError(f"Failed to delete database '{name}': {e}") from e

    async def open_transaction(
        self,
        database: str,
        kind: TransactionType,
        settings: TransactionSettings,
    ) -> SqliteTransactionChannel:
        self._require_open()
        path = self._path(database)
        if not await aiofiles.os.path.isfile(path):
            raise TransportError(f"Database '{database}' does not exist")

        try:
            conn = await aiosqlite.connect(
                Path(path).resolve().as_uri() + "?mode=rw",
                uri=True,
                timeout=settings.schema_lock_timeout,
                isolation_level=None,
            )
        except aiosqlite.Error as e:
            raise TransportError(f"Failed to open '{database}': {e}") from e

        try:
            if kind is TransactionType.READ:
                await conn.execute("PRAGMA query_only = ON")
            await conn.execute(_BEGIN_STATEMENTS[kind])
        except aiosqlite.Error as e:
            await conn.close()
            raise TransportError(f"Failed to begin {kind.label} transaction on '{database}': {e}") from e
        except asyncio.CancelledError:
            await conn.close()
            raise

        channel = SqliteTransactionChannel(self, database, kind, conn, self.logger)
        self._channels.add(channel)
        _open_databases.setdefault(channel.path, set()).add(channel)
        return channel

    def __repr__(self) -> str:
        return f"SqliteSession(root={self.root!r}, open={self._open}, transactions={len(self._channels)})"


class SqliteTransport(Transport):
    """
    Reference transport storing databases as SQLite files.

    Args:
        base_dir: Directory holding one sub-directory per address. Defaults to
            $ASYNC_DB_DRIVER_DATA_DIR, then ~/.async_db_driver.
        users: Accepted username/password pairs. Defaults to admin/password.
        logger: Logger shared with sessions and channels.
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        users: Optional[Dict[str, str]] = None,
        *,
        logger: Optional[Logger] = None,
    ) -> None:
        self.base_dir = os.fspath(base_dir) if base_dir is not None else default_data_dir()
        self.users = dict(DEFAULT_USERS if users is None else users)
        self.logger = logger or logging_getLogger(__name__)

    async def connect(
        self,
        address: str,
        credentials: CredentialSnapshot,
        settings: ConnectionSettings,
    ) -> SqliteSession:
        try:
            host, port = split_address(address)
        except ValueError as e:
            raise TransportError(str(e)) from e

        if self.users.get(credentials.username) != credentials.password:
            raise TransportError(f"Authentication failed for user '{credentials.username}'")

        if settings.tls_enabled:
            self.logger.debug(f"TLS requested for {address}; local file access is not encrypted.")

        root = os.path.join(self.base_dir, f"{host}_{port}")
        try:
            await aiofiles.os.makedirs(root, exist_ok=True)
        except OSError as e:
            raise TransportError(f"Cannot reach {address}: {e}") from e
        return SqliteSession(root, self.logger)

    def __repr__(self) -> str:
        return f"SqliteTransport(base_dir={self.base_dir!r})"
