"""
Boundary between the driver core and whatever actually reaches the server.

The core never interprets queries or result payloads. It hands query text to
a `TransactionChannel` and receives opaque bytes back. Transports report every
failure as `TransportError`; the core maps it onto its own error taxonomy.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List

from ..driver.options import ConnectionSettings, CredentialSnapshot, QuerySettings, TransactionSettings
from ..driver.types import TransactionType


class TransportError(Exception):
    """Raised by transports for any network, authentication or server-side failure."""
    pass


class TransactionChannel(ABC):
    """Server-side half of one transaction."""

    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def query(self, query: str, settings: QuerySettings) -> bytes:
        """Execute a query and return the encoded rows."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Apply pending changes. The channel is closed afterwards, whatever the outcome."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending changes. The channel is closed afterwards."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the channel, discarding anything not committed."""
        ...


class Session(ABC):
    """An authenticated session with one server."""

    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def list_databases(self) -> List[str]:
        ...

    @abstractmethod
    async def create_database(self, name: str) -> None:
        ...

    @abstractmethod
    async def contains_database(self, name: str) -> bool:
        ...

    @abstractmethod
    async def database_schema(self, name: str) -> str:
        ...

    @abstractmethod
    async def delete_database(self, name: str) -> None:
        ...

    @abstractmethod
    async def open_transaction(
        self,
        database: str,
        kind: TransactionType,
        settings: TransactionSettings,
    ) -> TransactionChannel:
        ...


class Transport(ABC):
    """Factory for sessions."""

    @abstractmethod
    async def connect(
        self,
        address: str,
        credentials: CredentialSnapshot,
        settings: ConnectionSettings,
    ) -> Session:
        ...
