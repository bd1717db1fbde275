# tests/test_log.py
import logging
import pytest
from .. import log as log_module
from ..log import ExecutionLog, Unknown, init_logging


@pytest.fixture
def fresh_logging(monkeypatch):
    """Reset the one-time logging flag and restore the package logger afterwards."""
    logger = logging.getLogger(log_module.LOGGER_NAME)
    handlers, level = list(logger.handlers), logger.level
    monkeypatch.setattr(log_module, "_initialized", False)
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)


class TestInitLogging:
    """Tests for init_logging."""

    def test_configures_once(self, fresh_logging):
        before = len(fresh_logging.handlers)
        assert init_logging(logging.DEBUG) is None
        assert log_module.logging_initialized()
        assert fresh_logging.level == logging.DEBUG
        assert len(fresh_logging.handlers) == before + 1

        init_logging(logging.ERROR)
        assert fresh_logging.level == logging.DEBUG
        assert len(fresh_logging.handlers) == before + 1


class TestExecutionLog:
    """Tests for ExecutionLog."""

    def test_to_dict(self):
        item = ExecutionLog("localhost:1729", "test", "query", "SELECT 1", "12 bytes")
        assert item.to_dict() == {
            "address": "localhost:1729",
            "database": "test",
            "operation": "query",
            "query": "SELECT 1",
            "result": "12 bytes",
        }

    def test_unknown_result(self):
        item = ExecutionLog("localhost:1729", None, "list_databases")
        assert isinstance(item.result, Unknown)
        assert item.to_dict()["result"] == "Unknown(Result)"

    def test_equality(self):
        a = ExecutionLog("h:1", "db", "commit", "COMMIT")
        assert a == ExecutionLog("h:1", "db", "commit", "COMMIT")
        assert a != ExecutionLog("h:1", "db", "rollback", "ROLLBACK")
        assert a != "commit"

    def test_unknown(self):
        assert Unknown("x") == Unknown("x")
        assert Unknown("x") != Unknown("y")
        assert hash(Unknown("x")) == hash(Unknown("x"))
        assert repr(Unknown("x")) == "<Unknown: x>"
