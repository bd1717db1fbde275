from .base import Session, TransactionChannel, Transport, TransportError
from .sqlite import (
    SqliteSession,
    SqliteTransactionChannel,
    SqliteTransport,
    DATA_DIR_ENV,
    default_data_dir,
)

__all__ = [
    "Session",
    "TransactionChannel",
    "Transport",
    "TransportError",
    "SqliteSession",
    "SqliteTransactionChannel",
    "SqliteTransport",
    "DATA_DIR_ENV",
    "default_data_dir",
]
