from typing import Optional
from .utils import validate_non_neg_int, validate_none_or_non_neg_int


class Full:
    """Marker returned by CloggableList.append/extend when the list reached max_length."""
    def __init__(self, tag: str = ""):
        self.tag = str(tag)
    def __bool__(self):
        return True
    def __repr__(self):
        return f"Full({self.tag})"


class CloggableList(list):
    """
    A list with a soft capacity and a hard overflow limit.

    Appending reports `Full` once `max_length` is reached. Up to `tolerance`
    extra items are accepted after that; beyond it appends raise
    OverflowError until the list is flushed or trimmed. A `tolerance` of None
    removes the hard limit.

    Example:
        >>> cl = CloggableList(max_length=2, tolerance=1)
        >>> cl.append(1)
        >>> cl.append(2)
        Full()
        >>> cl.append(3)  # within tolerance
        Full()
        >>> cl.append(4)  # raises OverflowError
    """

    def __init__(self, max_length: int = 1, tolerance: Optional[int] = 0):
        super().__init__()
        self.max_length = max_length
        self.tolerance = tolerance

    @property
    def full(self) -> bool:
        return len(self) >= self.max_length

    @property
    def max_length(self) -> int:
        return self._max_length

    @max_length.setter
    def max_length(self, value: int) -> None:
        self._max_length = validate_non_neg_int(value, "max_length")

    @property
    def tolerance(self) -> Optional[int]:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: Optional[int]) -> None:
        self._tolerance = validate_none_or_non_neg_int(value, "tolerance")

    def tolerable(self) -> bool:
        """Check whether one more item fits within max_length + tolerance."""
        if self.tolerance is None:
            return True
        return len(self) < self.max_length + self.tolerance

    def append(self, object) -> Optional[Full]:
        if not self.tolerable():
            raise OverflowError("List is full")
        super().append(object)
        return Full() if self.full else None

    def extend(self, iterable) -> Optional[Full]:
        items = list(iterable)
        if self.tolerance is not None and len(self) + len(items) > self.max_length + self.tolerance:
            raise OverflowError("List is full")
        super().extend(items)
        return Full() if self.full else None

    def rotate(self, object) -> tuple:
        """Append, then drop the oldest elements beyond max_length. Returns the dropped ones."""
        super().append(object)
        return self.trim()

    def flush(self) -> tuple:
        """
        Remove all elements and return them as a tuple.
        """
        output = tuple(self)
        self.clear()
        return output

    def trim(self) -> tuple:
        """Drop the oldest elements beyond max_length and return them."""
        excess = len(self) - self.max_length
        if excess <= 0:
            return ()
        dropped = tuple(self[:excess])
        del self[:excess]
        return dropped
