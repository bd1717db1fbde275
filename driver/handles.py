"""
Generation-checked handle registry.

Every resource that crosses the driver boundary (credentials, options,
connections, transactions, pending queries and query results) is registered
here and referred to through a `Handle`. A handle carries the slot index and
the generation of the slot at registration time; releasing the resource bumps
the generation, so a stale handle can never reach a resource that reused its
slot. Any lookup through a stale handle raises `StateError`.
"""
from __future__ import annotations
from enum import Enum
from threading import Lock
from typing import Any, Optional

from .exceptions import StateError


class HandleKind(Enum):
    CREDENTIALS = "credentials"
    CONNECTION_OPTIONS = "connection_options"
    CONNECTION = "connection"
    TRANSACTION_OPTIONS = "transaction_options"
    QUERY_OPTIONS = "query_options"
    TRANSACTION = "transaction"
    PENDING_QUERY = "pending_query"
    QUERY_RESULT = "query_result"


class Handle:
    __slots__ = ("_kind", "_index", "_generation")

    def __init__(self, kind: HandleKind, index: int, generation: int) -> None:
        self._kind = kind
        self._index = index
        self._generation = generation

    @property
    def kind(self) -> HandleKind:
        return self._kind

    @property
    def index(self) -> int:
        return self._index

    @property
    def generation(self) -> int:
        return self._generation

    def __repr__(self) -> str:
        return f"Handle({self._kind.value}, index={self._index}, generation={self._generation})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Handle):
            return False
        return (
            self._kind is other._kind
            and self._index == other._index
            and self._generation == other._generation
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._index, self._generation))


class _Slot:
    __slots__ = ("generation", "kind", "resource")

    def __init__(self) -> None:
        self.generation = 0
        self.kind: Optional[HandleKind] = None
        self.resource: Any = None

    @property
    def occupied(self) -> bool:
        return self.kind is not None


class HandleRegistry:
    """
    Slot table mapping handles to live resources.

    Attributes:
        name (str): Label used in error messages.

    Methods:
        register(kind, resource) -> Handle:
            Store a resource and hand out the only handle to it.
        get(handle, kind=None) -> Any:
            Return the resource behind a live handle.
        release(handle) -> Any:
            Remove the resource and invalidate the handle.
        is_live(handle) -> bool:
            Check a handle without raising.
    """

    def __init__(self, name: str = "registry") -> None:
        self.name = name
        self._slots: list[_Slot] = []
        self._free: list[int] = []
        self._live = 0
        self._lock = Lock()

    def register(self, kind: HandleKind, resource: Any) -> Handle:
        if not isinstance(kind, HandleKind):
            raise TypeError(f"kind must be a HandleKind, got {type(kind).__name__}")
        with self._lock:
            if self._free:
                index = self._free.pop()
                slot = self._slots[index]
            else:
                index = len(self._slots)
                slot = _Slot()
                self._slots.append(slot)
            slot.kind = kind
            slot.resource = resource
            self._live += 1
            return Handle(kind, index, slot.generation)

    def _lookup(self, handle: Handle, kind: Optional[HandleKind]) -> _Slot:
        # Caller holds the lock.
        if not isinstance(handle, Handle):
            raise TypeError(f"Expected Handle, got {type(handle).__name__}")
        if kind is not None and handle.kind is not kind:
            raise StateError(f"Handle {handle!r} is not a {kind.value} handle")
        if handle.index >= len(self._slots):
            raise StateError(f"Unknown handle {handle!r}")
        slot = self._slots[handle.index]
        if not slot.occupied or slot.generation != handle.generation or slot.kind is not handle.kind:
            raise StateError(f"Stale {handle.kind.value} handle: the resource was already released")
        return slot

    def get(self, handle: Handle, kind: Optional[HandleKind] = None) -> Any:
        with self._lock:
            return self._lookup(handle, kind).resource

    def release(self, handle: Handle) -> Any:
        with self._lock:
            slot = self._lookup(handle, None)
            resource = slot.resource
            slot.resource = None
            slot.kind = None
            slot.generation += 1
            self._free.append(handle.index)
            self._live -= 1
            return resource

    def is_live(self, handle: Handle) -> bool:
        with self._lock:
            try:
                self._lookup(handle, None)
            except StateError:
                return False
            return True

    def __contains__(self, handle: object) -> bool:
        return isinstance(handle, Handle) and self.is_live(handle)

    def __len__(self) -> int:
        return self._live

    def __repr__(self) -> str:
        return f"HandleRegistry(name={self.name!r}, live={self._live}, slots={len(self._slots)})"


# Process-wide registry used when a resource is not given one explicitly.
default_registry = HandleRegistry("default")


class OwnedResource:
    """
    Base class for objects owned through a registry handle.

    Subclasses set `_kind`. The object registers itself on construction and
    every read goes through `_check_live()`, which resolves the handle in the
    registry and so fails with `StateError` once the object was released.
    """
    _kind: HandleKind

    def __init__(self, registry: Optional[HandleRegistry] = None) -> None:
        self._registry = registry if registry is not None else default_registry
        self._handle = self._registry.register(self._kind, self)

    @property
    def handle(self) -> Handle:
        return self._handle

    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    @property
    def released(self) -> bool:
        return not self._registry.is_live(self._handle)

    def _check_live(self) -> None:
        self._registry.get(self._handle, self._kind)

    def _release(self) -> bool:
        """Release the handle. Returns False if it had already been released."""
        try:
            self._registry.release(self._handle)
        except StateError:
            return False
        return True
