# tests/driver/test_handles.py
import threading
import pytest
from ...driver.handles import Handle, HandleKind, HandleRegistry, OwnedResource, default_registry
from ...driver.exceptions import StateError


class Widget(OwnedResource):
    _kind = HandleKind.QUERY_RESULT


class TestHandleRegistry:
    """Tests for HandleRegistry slot and generation bookkeeping."""

    def test_register_and_get(self):
        """Test a registered resource is reachable through its handle."""
        registry = HandleRegistry()
        resource = object()
        handle = registry.register(HandleKind.CONNECTION, resource)
        assert registry.get(handle) is resource
        assert registry.get(handle, HandleKind.CONNECTION) is resource
        assert len(registry) == 1
        assert handle in registry

    def test_register_rejects_non_kind(self):
        registry = HandleRegistry()
        with pytest.raises(TypeError):
            registry.register("connection", object())

    def test_get_wrong_kind_raises(self):
        """Test a handle cannot be used as a handle of another kind."""
        registry = HandleRegistry()
        handle = registry.register(HandleKind.CONNECTION, object())
        with pytest.raises(StateError) as exc_info:
            registry.get(handle, HandleKind.TRANSACTION)
        assert "not a transaction handle" in str(exc_info.value)

    def test_release_invalidates_handle(self):
        """Test lookups through a released handle raise StateError."""
        registry = HandleRegistry()
        resource = object()
        handle = registry.register(HandleKind.TRANSACTION, resource)
        assert registry.release(handle) is resource
        assert len(registry) == 0
        assert not registry.is_live(handle)
        assert handle not in registry
        with pytest.raises(StateError):
            registry.get(handle)

    def test_double_release_raises(self):
        registry = HandleRegistry()
        handle = registry.register(HandleKind.TRANSACTION, object())
        registry.release(handle)
        with pytest.raises(StateError):
            registry.release(handle)

    def test_reused_slot_rejects_stale_handle(self):
        """Test a stale handle cannot reach a new resource stored in its old slot."""
        registry = HandleRegistry()
        old = registry.register(HandleKind.PENDING_QUERY, "old")
        registry.release(old)
        new = registry.register(HandleKind.PENDING_QUERY, "new")

        assert new.index == old.index
        assert new.generation == old.generation + 1
        assert new != old
        assert registry.get(new) == "new"
        with pytest.raises(StateError):
            registry.get(old)

    def test_unknown_index_raises(self):
        registry = HandleRegistry()
        with pytest.raises(StateError) as exc_info:
            registry.get(Handle(HandleKind.CONNECTION, 5, 0))
        assert "Unknown handle" in str(exc_info.value)

    def test_get_rejects_non_handle(self):
        with pytest.raises(TypeError):
            HandleRegistry().get(("connection", 0, 0))

    def test_concurrent_registration_is_consistent(self):
        """Test registrations from several threads all get distinct live handles."""
        registry = HandleRegistry()
        handles = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                handle = registry.register(HandleKind.QUERY_RESULT, object())
                with lock:
                    handles.append(handle)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 800
        assert len(set(handles)) == 800


class TestHandle:
    def test_equality_and_hash(self):
        a = Handle(HandleKind.CONNECTION, 1, 2)
        b = Handle(HandleKind.CONNECTION, 1, 2)
        assert a == b
        assert hash(a) == hash(b)
        assert a != Handle(HandleKind.TRANSACTION, 1, 2)
        assert a != (HandleKind.CONNECTION, 1, 2)

    def test_repr(self):
        assert repr(Handle(HandleKind.CONNECTION, 0, 3)) == "Handle(connection, index=0, generation=3)"


class TestOwnedResource:
    """Tests for the OwnedResource base class."""

    def test_registers_on_construction(self):
        registry = HandleRegistry()
        widget = Widget(registry)
        assert widget.registry is registry
        assert widget.handle.kind is HandleKind.QUERY_RESULT
        assert registry.get(widget.handle) is widget
        assert not widget.released

    def test_release_once(self):
        """Test _release reports whether it actually released the handle."""
        registry = HandleRegistry()
        widget = Widget(registry)
        assert widget._release() is True
        assert widget.released
        assert widget._release() is False
        with pytest.raises(StateError):
            widget._check_live()

    def test_default_registry(self):
        widget = Widget()
        try:
            assert widget.registry is default_registry
            assert widget.handle in default_registry
        finally:
            widget._release()
