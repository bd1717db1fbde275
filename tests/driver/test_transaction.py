# tests/driver/test_transaction.py
import asyncio
import pytest
from unittest.mock import MagicMock

from .fakes import RecordingChannel, make_connection, settle
from ...driver.transaction import Transaction
from ...driver.options import QueryOptions, TransactionOptions
from ...driver.types import PendingState, TransactionState, TransactionType
from ...driver.exceptions import QueryError, StateError, TransactionError
from ...log import ExecutionLog
from ...transport.base import TransportError


async def open_transaction(registry, channel=None, kind=TransactionType.WRITE, options=None):
    channel = channel or RecordingChannel()
    connection = make_connection(registry, channel)
    txn = await Transaction.open(connection, "test", kind, options)
    return txn, channel, connection


class TestTransactionOpen:
    """Tests for Transaction.open."""

    @pytest.mark.asyncio
    async def test_open_tracks_and_records(self, registry):
        """Test opening registers the transaction with its connection."""
        txn, channel, connection = await open_transaction(registry, kind="write")
        assert txn.is_open()
        assert txn.state is TransactionState.OPEN
        assert txn.kind is TransactionType.WRITE
        assert txn.database == "test"
        connection._track.assert_called_once_with(txn)
        connection._record.assert_awaited_once_with(
            ExecutionLog("localhost:1729", "test", "begin", "write")
        )
        assert registry.get(txn.handle) is txn
        await txn.close()

    @pytest.mark.asyncio
    async def test_open_passes_settings(self, registry):
        options = TransactionOptions(registry=registry).set_timeout(60000).set_schema_lock_timeout(500)
        txn, channel, connection = await open_transaction(registry, options=options)
        args = connection._session.open_transaction.await_args.args
        assert args[0] == "test"
        assert args[1] is TransactionType.WRITE
        assert args[2].timeout == 60.0
        assert args[2].schema_lock_timeout == 0.5
        await txn.close()

    @pytest.mark.asyncio
    async def test_open_rejected_by_server(self, registry):
        """Test a server rejection raises TransactionError and allocates nothing."""
        connection = make_connection(registry, None)
        connection._session.open_transaction.side_effect = TransportError("database is locked")
        with pytest.raises(TransactionError) as exc_info:
            await Transaction.open(connection, "test", TransactionType.SCHEMA)
        assert "database is locked" in str(exc_info.value)
        assert len(registry) == 0
        connection._track.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_on_closed_connection(self, registry):
        connection = make_connection(registry, RecordingChannel())
        connection._require_open.side_effect = StateError("connection is closed")
        with pytest.raises(StateError):
            await Transaction.open(connection, "test", TransactionType.READ)
        connection._session.open_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_closed_while_opening(self, registry):
        """Test a channel obtained after the connection closed is given back."""
        channel = RecordingChannel()
        connection = make_connection(registry, channel)
        connection.is_open.return_value = False
        with pytest.raises(StateError):
            await Transaction.open(connection, "test", TransactionType.WRITE)
        assert channel.calls == ["CLOSE"]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_invalid_kind(self, registry):
        connection = make_connection(registry, RecordingChannel())
        with pytest.raises(ValueError):
            await Transaction.open(connection, "test", "delete")


class TestTransactionQueries:
    """Tests for query and query_async."""

    @pytest.mark.asyncio
    async def test_query_returns_result(self, registry):
        txn, channel, connection = await open_transaction(registry)
        result = await txn.query("SELECT 1")
        assert result.rows() == [{"query": "SELECT 1"}]
        assert txn.pending == ()
        result.release()
        await txn.close()

    @pytest.mark.asyncio
    async def test_query_error(self, registry):
        txn, channel, connection = await open_transaction(registry)
        with pytest.raises(QueryError) as exc_info:
            await txn.query("fail")
        assert "syntax error" in str(exc_info.value)
        # A failed query leaves the transaction usable.
        assert txn.is_open()
        await txn.close()

    @pytest.mark.asyncio
    async def test_query_requires_string(self, registry):
        txn, channel, connection = await open_transaction(registry)
        with pytest.raises(TypeError):
            txn.query_async(42)
        await txn.close()

    @pytest.mark.asyncio
    async def test_submission_order_is_kept(self, registry):
        """Test pipelined queries and the commit reach the channel in submission order."""
        txn, channel, connection = await open_transaction(registry)
        pendings = [txn.query_async(f"q{i}") for i in range(5)]
        await txn.commit()
        assert channel.calls == ["q0", "q1", "q2", "q3", "q4", "COMMIT"]
        for i, pending in enumerate(pendings):
            result = await pending.resolve()
            assert result.rows() == [{"query": f"q{i}"}]
        await txn.close()

    @pytest.mark.asyncio
    async def test_options_snapshot_at_submission(self, registry):
        """Test mutating query options after submission does not affect the submitted query."""
        txn, channel, connection = await open_transaction(registry)
        options = QueryOptions(registry=registry).set_prefetch_size(10)
        pending = txn.query_async("SELECT 1", options)
        options.set_prefetch_size(99)
        (await pending.resolve()).release()
        assert channel.settings[0].prefetch_size == 10
        await txn.close()

    @pytest.mark.asyncio
    async def test_query_after_commit(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.commit()
        with pytest.raises(StateError) as exc_info:
            txn.query_async("SELECT 1")
        assert "committed" in str(exc_info.value)
        await txn.close()


class TestTransactionTermination:
    """Tests for commit, rollback and close."""

    @pytest.mark.asyncio
    async def test_commit(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.commit()
        assert txn.state is TransactionState.COMMITTED
        assert not txn.is_open()
        connection._record.assert_awaited_with(
            ExecutionLog("localhost:1729", "test", "commit", "COMMIT")
        )
        await txn.close()

    @pytest.mark.asyncio
    async def test_commit_read_transaction(self, registry):
        """Test a no-op commit on a read transaction succeeds."""
        txn, channel, connection = await open_transaction(registry, kind=TransactionType.READ)
        await txn.commit()
        assert txn.state is TransactionState.COMMITTED
        await txn.close()

    @pytest.mark.asyncio
    async def test_commit_twice(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.commit()
        with pytest.raises(StateError):
            await txn.commit()
        await txn.close()

    @pytest.mark.asyncio
    async def test_failed_commit_closes(self, registry):
        """Test a failed commit leaves the transaction terminal."""
        txn, channel, connection = await open_transaction(registry, RecordingChannel(fail_commit=True))
        with pytest.raises(TransactionError) as exc_info:
            await txn.commit()
        assert "write conflict" in str(exc_info.value)
        assert txn.state is TransactionState.CLOSED
        assert txn.close_reason == "commit failed"
        with pytest.raises(StateError) as exc_info:
            txn.query_async("SELECT 1")
        assert "commit failed" in str(exc_info.value)
        # Rolling back after a failure is allowed and does nothing.
        await txn.rollback()
        assert txn.state is TransactionState.CLOSED
        await txn.close()

    @pytest.mark.asyncio
    async def test_rollback(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.rollback()
        assert txn.state is TransactionState.ROLLED_BACK
        assert channel.calls == ["ROLLBACK"]
        await txn.close()

    @pytest.mark.asyncio
    async def test_rollback_after_commit(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.commit()
        with pytest.raises(StateError):
            await txn.rollback()
        await txn.close()

    @pytest.mark.asyncio
    async def test_rollback_cancels_in_flight_queries(self, registry):
        """Test queries still running when the transaction rolls back resolve with QueryError."""
        channel = RecordingChannel()
        channel.gate = asyncio.Event()
        txn, channel, connection = await open_transaction(registry, channel)
        pending = txn.query_async("SELECT 1")
        await settle()
        await txn.rollback()
        with pytest.raises(QueryError) as exc_info:
            await pending.resolve()
        assert "rolled back" in str(exc_info.value)
        assert pending.state is PendingState.RESOLVED
        await txn.close()

    @pytest.mark.asyncio
    async def test_close_open_transaction(self, registry):
        """Test closing an open transaction discards it and releases the handle."""
        txn, channel, connection = await open_transaction(registry)
        await txn.close()
        assert txn.state is TransactionState.CLOSED
        assert txn.released
        assert channel.calls == ["CLOSE"]
        connection._untrack.assert_called_once_with(txn)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_twice(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.close()
        await txn.close()
        assert channel.calls == ["CLOSE"]

    @pytest.mark.asyncio
    async def test_close_swallows_transport_failure(self, registry):
        """Test close always succeeds locally and logs server-side failures."""
        txn, channel, connection = await open_transaction(registry, RecordingChannel(fail_close=True))
        await txn.close()
        assert txn.released
        txn.logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_operations_after_close(self, registry):
        txn, channel, connection = await open_transaction(registry)
        await txn.close()
        with pytest.raises(StateError):
            txn.query_async("SELECT 1")
        with pytest.raises(StateError):
            await txn.commit()
        with pytest.raises(StateError):
            await txn.rollback()
        assert not txn.is_open()


class TestTransactionTimeout:
    """Tests for the transaction timeout timer."""

    @pytest.mark.asyncio
    async def test_timeout_closes_transaction(self, registry):
        options = TransactionOptions(registry=registry).set_timeout(20)
        channel = RecordingChannel()
        channel.gate = asyncio.Event()
        txn, channel, connection = await open_transaction(registry, channel, options=options)
        pending = txn.query_async("SELECT 1")

        await asyncio.sleep(0.1)

        assert txn.state is TransactionState.CLOSED
        assert "timeout" in txn.close_reason
        with pytest.raises(StateError) as exc_info:
            txn.query_async("SELECT 2")
        assert "timeout" in str(exc_info.value)
        with pytest.raises(QueryError):
            await pending.resolve()
        await txn.close()
        assert channel.calls[-1] == "CLOSE"
        assert len(registry) == 1  # the options object

    @pytest.mark.asyncio
    async def test_commit_behind_hung_query_times_out(self, registry):
        """Test commit waits for submitted queries only until the transaction timeout."""
        options = TransactionOptions(registry=registry).set_timeout(50)
        channel = RecordingChannel()
        channel.gate = asyncio.Event()
        txn, channel, connection = await open_transaction(registry, channel, options=options)
        pending = txn.query_async("SELECT 1")

        with pytest.raises(TransactionError) as exc_info:
            await asyncio.wait_for(txn.commit(), timeout=1)
        assert "timeout" in str(exc_info.value)
        assert txn.state is TransactionState.CLOSED
        assert "timeout" in txn.close_reason
        assert "COMMIT" not in channel.calls
        with pytest.raises(QueryError):
            await pending.resolve()
        await txn.close()
        assert channel.calls[-1] == "CLOSE"
        assert len(registry) == 1  # the options object

    @pytest.mark.asyncio
    async def test_commit_cancels_timer(self, registry):
        options = TransactionOptions(registry=registry).set_timeout(20)
        txn, channel, connection = await open_transaction(registry, options=options)
        await txn.commit()
        await asyncio.sleep(0.05)
        assert txn.state is TransactionState.COMMITTED
        await txn.close()


class TestTransactionContextManager:
    """Tests for async with support."""

    @pytest.mark.asyncio
    async def test_write_commits_on_clean_exit(self, registry):
        txn, channel, connection = await open_transaction(registry)
        async with txn as tx:
            (await tx.query("INSERT")).release()
        assert txn.state is TransactionState.COMMITTED
        assert txn.released
        assert channel.calls == ["INSERT", "COMMIT"]

    @pytest.mark.asyncio
    async def test_rolls_back_on_exception(self, registry):
        txn, channel, connection = await open_transaction(registry)
        with pytest.raises(RuntimeError):
            async with txn:
                raise RuntimeError("boom")
        assert txn.state is TransactionState.ROLLED_BACK
        assert txn.released

    @pytest.mark.asyncio
    async def test_read_does_not_commit(self, registry):
        txn, channel, connection = await open_transaction(registry, kind=TransactionType.READ)
        async with txn:
            pass
        assert txn.state is TransactionState.CLOSED
        assert channel.calls == ["CLOSE"]

    @pytest.mark.asyncio
    async def test_repr(self, registry):
        txn, channel, connection = await open_transaction(registry, kind=TransactionType.SCHEMA)
        assert repr(txn) == "Transaction(database='test', kind=schema, state=open)"
        await txn.close()
