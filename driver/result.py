from __future__ import annotations
from typing import Optional

import msgpack

from .exceptions import QueryError
from .handles import HandleKind, HandleRegistry, OwnedResource
from .types import Rows


def encode_rows(rows: Rows) -> bytes:
    """Encode result rows as a msgpack array of maps. No rows encode to an empty payload."""
    if not rows:
        return b""
    return msgpack.packb(rows, use_bin_type=True)


def decode_rows(data: bytes) -> Rows:
    if not data:
        return []
    try:
        rows = msgpack.unpackb(data, raw=False)
    except (msgpack.UnpackException, ValueError, TypeError) as e:
        raise QueryError(f"failed to decode query results: {e}") from e
    if not isinstance(rows, list):
        raise QueryError(f"failed to decode query results: expected an array, got {type(rows).__name__}")
    return rows


class QueryResult(OwnedResource):
    """
    Byte payload returned by a query, owned by the caller.

    The payload stays readable until `release()`; reading afterwards raises
    `StateError`. Use it as a context manager to release on exit.
    """
    _kind = HandleKind.QUERY_RESULT

    def __init__(self, data: bytes, *, registry: Optional[HandleRegistry] = None) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"Query result payload must be bytes, got {type(data).__name__}")
        self._data: Optional[bytes] = bytes(data)
        super().__init__(registry)

    @property
    def data(self) -> bytes:
        self._check_live()
        return self._data  # type: ignore[return-value]

    @property
    def length(self) -> int:
        return len(self.data)

    def __len__(self) -> int:
        return self.length

    def rows(self) -> Rows:
        """Decode the payload into a list of row mappings."""
        return decode_rows(self.data)

    def release(self) -> None:
        if self._release():
            self._data = None

    def __enter__(self) -> QueryResult:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        if self._data is None:
            return "QueryResult(released)"
        return f"QueryResult(length={len(self._data)})"
