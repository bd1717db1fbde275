from __future__ import annotations
import os
from typing import NamedTuple, Optional

from .exceptions import ConfigurationError, StateError
from .handles import HandleKind, HandleRegistry, OwnedResource
from .types import Millis
from ..utils import millis_to_seconds, validate_none_or_non_neg_int

DEFAULT_CLOSE_TIMEOUT = 10.0
DEFAULT_TRANSACTION_TIMEOUT = 300.0
DEFAULT_SCHEMA_LOCK_TIMEOUT = 10.0


class CredentialSnapshot(NamedTuple):
    username: str
    password: str

    def __repr__(self) -> str:
        return f"CredentialSnapshot(username={self.username!r}, password='***')"


class ConnectionSettings(NamedTuple):
    tls_enabled: bool
    tls_root_ca: Optional[str]
    close_timeout: float


class TransactionSettings(NamedTuple):
    timeout: float
    schema_lock_timeout: float


class QuerySettings(NamedTuple):
    include_instance_types: bool
    prefetch_size: Optional[int]


class Credentials(OwnedResource):
    """
    Username and secret used to authenticate a connection.

    Immutable once created. A connection copies the credentials when it opens,
    so dropping them afterwards does not affect the connection.
    """
    _kind = HandleKind.CREDENTIALS

    def __init__(self, username: str, password: str, *, registry: Optional[HandleRegistry] = None) -> None:
        if not isinstance(username, str) or not isinstance(password, str):
            raise TypeError("username and password must be strings")
        self._username = username
        self._password = password
        super().__init__(registry)

    @property
    def username(self) -> str:
        self._check_live()
        return self._username

    def snapshot(self) -> CredentialSnapshot:
        self._check_live()
        return CredentialSnapshot(self._username, self._password)

    def drop(self) -> None:
        """Wipe the secret and release the handle."""
        if self._release():
            self._password = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self._username!r}, password='***')"


class ConnectionOptions(OwnedResource):
    """
    TLS configuration and close bound for a connection.

    Raises:
        ConfigurationError: If a root CA is given without TLS, or the CA path
            is not a readable file.
        ValueError: If close_timeout is not a positive number.
    """
    _kind = HandleKind.CONNECTION_OPTIONS

    def __init__(
        self,
        tls_enabled: bool = False,
        tls_root_ca: Optional[str] = None,
        *,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        registry: Optional[HandleRegistry] = None,
    ) -> None:
        if tls_root_ca is not None:
            if not isinstance(tls_root_ca, (str, os.PathLike)) or not str(tls_root_ca).strip():
                raise ConfigurationError(f"Malformed TLS root CA path: {tls_root_ca!r}")
            if not tls_enabled:
                raise ConfigurationError("A TLS root CA was given but TLS is not enabled")
            tls_root_ca = os.fspath(tls_root_ca)
            if not os.path.isfile(tls_root_ca):
                raise ConfigurationError(f"TLS root CA file not found: {tls_root_ca}")
        if isinstance(close_timeout, bool) or not isinstance(close_timeout, (int, float)) or close_timeout <= 0:
            raise ValueError("close_timeout must be a positive number of seconds")

        self._settings = ConnectionSettings(bool(tls_enabled), tls_root_ca, float(close_timeout))
        super().__init__(registry)

    @property
    def tls_enabled(self) -> bool:
        self._check_live()
        return self._settings.tls_enabled

    @property
    def tls_root_ca(self) -> Optional[str]:
        self._check_live()
        return self._settings.tls_root_ca

    @property
    def close_timeout(self) -> float:
        self._check_live()
        return self._settings.close_timeout

    def snapshot(self) -> ConnectionSettings:
        self._check_live()
        return self._settings

    def drop(self) -> None:
        self._release()

    def __repr__(self) -> str:
        return (f"ConnectionOptions(tls_enabled={self._settings.tls_enabled}, "
                f"tls_root_ca={self._settings.tls_root_ca!r}, close_timeout={self._settings.close_timeout})")


class TransactionOptions(OwnedResource):
    """
    Builder for transaction timeouts.

    Setters mutate in place and return the builder. The transaction takes a
    snapshot when it opens; later changes do not reach it.
    """
    _kind = HandleKind.TRANSACTION_OPTIONS

    def __init__(self, *, registry: Optional[HandleRegistry] = None) -> None:
        self._timeout: Optional[float] = None
        self._schema_lock_timeout: Optional[float] = None
        super().__init__(registry)

    def set_timeout(self, millis: Millis) -> TransactionOptions:
        """Set the overall transaction timeout. The transaction is closed when it elapses."""
        self._check_live()
        self._timeout = millis_to_seconds(millis)
        return self

    def set_schema_lock_timeout(self, millis: Millis) -> TransactionOptions:
        """Set how long to wait for the schema/write lock before failing to open."""
        self._check_live()
        self._schema_lock_timeout = millis_to_seconds(millis)
        return self

    @property
    def timeout(self) -> Optional[float]:
        self._check_live()
        return self._timeout

    @property
    def schema_lock_timeout(self) -> Optional[float]:
        self._check_live()
        return self._schema_lock_timeout

    def snapshot(self) -> TransactionSettings:
        self._check_live()
        return TransactionSettings(
            timeout=DEFAULT_TRANSACTION_TIMEOUT if self._timeout is None else self._timeout,
            schema_lock_timeout=(
                DEFAULT_SCHEMA_LOCK_TIMEOUT if self._schema_lock_timeout is None else self._schema_lock_timeout
            ),
        )

    def drop(self) -> None:
        self._release()

    def __repr__(self) -> str:
        return f"TransactionOptions(timeout={self._timeout}, schema_lock_timeout={self._schema_lock_timeout})"


class QueryOptions(OwnedResource):
    """Builder for per-query behaviour."""
    _kind = HandleKind.QUERY_OPTIONS

    def __init__(self, *, registry: Optional[HandleRegistry] = None) -> None:
        self._include_instance_types = False
        self._prefetch_size: Optional[int] = None
        super().__init__(registry)

    def set_include_instance_types(self, include: bool) -> QueryOptions:
        """Ask the server to return the type of every value alongside it."""
        self._check_live()
        self._include_instance_types = bool(include)
        return self

    def set_prefetch_size(self, size: Optional[int]) -> QueryOptions:
        """Number of rows buffered per round trip. None fetches everything at once."""
        self._check_live()
        size = validate_none_or_non_neg_int(size, "prefetch_size")
        if size == 0:
            raise ValueError("prefetch_size must be at least 1")
        self._prefetch_size = size
        return self

    @property
    def include_instance_types(self) -> bool:
        self._check_live()
        return self._include_instance_types

    @property
    def prefetch_size(self) -> Optional[int]:
        self._check_live()
        return self._prefetch_size

    def snapshot(self) -> QuerySettings:
        self._check_live()
        return QuerySettings(self._include_instance_types, self._prefetch_size)

    def drop(self) -> None:
        self._release()

    def __repr__(self) -> str:
        return (f"QueryOptions(include_instance_types={self._include_instance_types}, "
                f"prefetch_size={self._prefetch_size})")


def resolve_snapshot(options, default_factory, what: str):
    """Take a snapshot of caller options, or of fresh defaults when none are given."""
    if options is None:
        options = default_factory()
        try:
            return options.snapshot()
        finally:
            options.drop()
    try:
        return options.snapshot()
    except StateError as e:
        raise StateError(f"{what} were already dropped") from e
