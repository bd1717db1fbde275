# tests/driver/test_exceptions.py
import pytest
from ...driver.exceptions import (
    DriverError,
    ConfigurationError,
    ConnectionError,
    StateError,
    DatabaseError,
    TransactionError,
    QueryError,
)


class TestExceptions:
    """Tests for the driver exception hierarchy."""

    @pytest.mark.parametrize("error_type", [
        ConfigurationError,
        ConnectionError,
        StateError,
        DatabaseError,
        TransactionError,
        QueryError,
    ])
    def test_subclasses_driver_error(self, error_type):
        """Test every driver error can be caught as DriverError."""
        with pytest.raises(DriverError) as exc_info:
            raise error_type("boom")
        assert exc_info.value.message == "boom"
        assert str(exc_info.value) == "boom"

    def test_connection_error_is_not_builtin(self):
        assert not issubclass(ConnectionError, OSError)

    def test_default_message(self):
        assert DriverError().message == ""

    def test_cause_is_kept(self):
        """Test chained exceptions keep the transport error as their cause."""
        cause = RuntimeError("network down")
        try:
            try:
                raise cause
            except RuntimeError as e:
                raise ConnectionError(f"Failed to connect: {e}") from e
        except ConnectionError as error:
            assert error.__cause__ is cause
            assert "network down" in str(error)
