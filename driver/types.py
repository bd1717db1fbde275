from __future__ import annotations
from enum import Enum, IntEnum
from typing import Any, Union

# Type aliases
Row = dict[str, Any]
Rows = list[Row]
HistoryItem = dict[str, Any]
Millis = Union[int, float]


class TransactionType(IntEnum):
    """Intended mode of operation for a transaction."""
    READ = 0
    WRITE = 1
    SCHEMA = 2

    @classmethod
    def coerce(cls, value: Union[TransactionType, int, str]) -> TransactionType:
        """
        Normalize an enum member, its integer value or its name to a TransactionType.

        Raises:
            ValueError: If the value names no transaction type.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown transaction type: {value!r}") from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise ValueError(f"Unknown transaction type: {value!r}") from None
        raise ValueError(f"Invalid transaction type: {value!r}")

    @property
    def label(self) -> str:
        return self.name.lower()


class TransactionState(Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    CLOSED = "closed"

    @property
    def terminal(self) -> bool:
        return self is not TransactionState.OPEN


class PendingState(Enum):
    PENDING = "pending"
    READY = "ready"
    RESOLVED = "resolved"
    ABORTED = "aborted"
