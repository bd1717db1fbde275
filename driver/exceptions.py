class DriverError(Exception):
    """Base exception for the async database driver."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(DriverError):
    """Raised when an option combination is invalid. Detected before any network activity."""
    pass

class ConnectionError(DriverError):
    """Raised when opening, authenticating or talking to a server fails."""
    pass

class StateError(DriverError):
    """Raised when an operation targets a closed, terminal or already consumed handle."""
    pass

class DatabaseError(DriverError):
    """Raised when a catalog operation is rejected."""
    pass

class TransactionError(DriverError):
    """Raised on commit conflicts, lock timeouts and server-side transaction rejection."""
    pass

class QueryError(DriverError):
    """Raised when a query fails to submit or execute."""
    pass
