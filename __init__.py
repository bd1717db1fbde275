from .driver import (
    connect,
    Connection,
    Transaction,
    PendingQuery,
    QueryResult,
    Credentials,
    ConnectionOptions,
    TransactionOptions,
    QueryOptions,
    TransactionType,
    TransactionState,
    PendingState,
    DriverError,
    ConfigurationError,
    ConnectionError,
    StateError,
    DatabaseError,
    TransactionError,
    QueryError,
)
from .transport import SqliteTransport, Transport, TransportError
from .async_history_dump import (
    AsyncHistoryDump,
    AsyncHistoryDumpGenerator
)
from .log import init_logging, ExecutionLog

__all__ = (
    "connect",
    "Connection",
    "Transaction",
    "PendingQuery",
    "QueryResult",
    "Credentials",
    "ConnectionOptions",
    "TransactionOptions",
    "QueryOptions",
    "TransactionType",
    "TransactionState",
    "PendingState",
    "DriverError",
    "ConfigurationError",
    "ConnectionError",
    "StateError",
    "DatabaseError",
    "TransactionError",
    "QueryError",
    "SqliteTransport",
    "Transport",
    "TransportError",
    "AsyncHistoryDump",
    "AsyncHistoryDumpGenerator",
    "init_logging",
    "ExecutionLog",
)
