"""
Client-side core of an async database driver.

Public API:

    from async_db_driver import connect, Credentials, TransactionType

    conn = await connect("localhost:1729", Credentials("admin", "password"))
    await conn.create_database("test")

    async with await conn.transaction("test", TransactionType.WRITE) as tx:
        pending = tx.query_async("INSERT INTO entity DEFAULT VALUES")
        result = await pending.resolve()

    await conn.close()
"""

from .connection import Connection, connect, DEFAULT_ADDRESS
from .transaction import Transaction
from .future import PendingQuery
from .result import QueryResult, decode_rows, encode_rows

from .options import (
    Credentials,
    ConnectionOptions,
    TransactionOptions,
    QueryOptions,
    CredentialSnapshot,
    ConnectionSettings,
    TransactionSettings,
    QuerySettings,
)

from .handles import (
    Handle,
    HandleKind,
    HandleRegistry,
    OwnedResource,
    default_registry,
)

from .history import (
    HistoryManager,
    default_history_format_function,
)

from .exceptions import (
    DriverError,
    ConfigurationError,
    ConnectionError,
    StateError,
    DatabaseError,
    TransactionError,
    QueryError,
)

from .types import (
    TransactionType,
    TransactionState,
    PendingState,
    Row,
    Rows,
    HistoryItem,
)

__all__ = [
    # Main entry points
    "connect",
    "Connection",
    "Transaction",
    "PendingQuery",
    "QueryResult",
    "DEFAULT_ADDRESS",

    # Configuration
    "Credentials",
    "ConnectionOptions",
    "TransactionOptions",
    "QueryOptions",
    "CredentialSnapshot",
    "ConnectionSettings",
    "TransactionSettings",
    "QuerySettings",

    # Handles
    "Handle",
    "HandleKind",
    "HandleRegistry",
    "OwnedResource",
    "default_registry",

    # History
    "HistoryManager",
    "default_history_format_function",

    # Payloads
    "decode_rows",
    "encode_rows",

    # Exceptions
    "DriverError",
    "ConfigurationError",
    "ConnectionError",
    "StateError",
    "DatabaseError",
    "TransactionError",
    "QueryError",

    # Types
    "TransactionType",
    "TransactionState",
    "PendingState",
    "Row",
    "Rows",
    "HistoryItem",
]
