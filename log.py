from typing import Any, Optional
import logging
from threading import Lock

LOGGER_NAME = __name__.rpartition(".")[0] or __name__
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_init_lock = Lock()
_initialized = False


def init_logging(level: int = logging.INFO, fmt: str = DEFAULT_FORMAT) -> None:
    """
    Configure the driver's package logger once per process.

    Later calls do nothing. There is no teardown: the handler lives as long
    as the process.
    """
    global _initialized
    with _init_lock:
        if _initialized:
            return
        logger = logging.getLogger(LOGGER_NAME)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
        logger.setLevel(level)
        _initialized = True


def logging_initialized() -> bool:
    return _initialized


class Unknown:
    __slots__ = ("name",)
    def __init__(self, name: str):
        self.name = name
    def __repr__(self):
        return f"<Unknown: {self.name}>"
    def __eq__(self, other):
        if isinstance(other, Unknown):
            return self.name == other.name
        return False
    def __hash__(self):
        return hash(self.name)
    def __str__(self):
        return f'Unknown({self.name})'


class ExecutionLog:
    """One driver operation as recorded in a connection's history."""
    __slots__ = ("address", "database", "operation", "query", "result")
    def __init__(self, address: str, database: Optional[str], operation: str, query: Optional[str] = None,
                 result: Any = Unknown("Result")):
        self.address = address
        self.database = database
        self.operation = operation
        self.query = query
        self.result = result
    def __repr__(self):
        return (f"ExecutionLog({self.address!r}, {self.database!r}, {self.operation!r}, "
                f"{self.query!r}, {self.result!r})")
    def __str__(self):
        return (f"ExecutionLog("
                f"address={self.address!r}, database={self.database!r}, "
                f"operation={self.operation}, query={self.query!r}, "
                f"result={self.result})")

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "database": self.database,
            "operation": self.operation,
            "query": self.query,
            "result": str(self.result),
        }
    def __eq__(self, other):
        if not isinstance(other, ExecutionLog):
            return False
        return (
            self.address == other.address and
            self.database == other.database and
            self.operation == other.operation and
            self.query == other.query and
            self.result == other.result
        )
