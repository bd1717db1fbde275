from __future__ import annotations
from typing import Any, Callable, Optional, Tuple
import asyncio
from logging import Logger, getLogger as logging_getLogger

from .types import HistoryItem
from ..cloggable_list import CloggableList
from ..async_history_dump import AsyncHistoryDump, AsyncHistoryDumpGenerator
from ..log import ExecutionLog
from ..utils import validate_none_or_non_neg_int


def default_history_format_function(history: HistoryItem) -> str:
    """
    Default function to format history entries for text dumps.
    """
    operation, database = history["operation"], history["database"]
    timestamp = history.get("timestamp", "no timestamp")
    where = f"{history['address']}/{database}" if database else history["address"]
    if operation in ("commit", "rollback"):
        return f"[{timestamp}]({where}) : {operation.upper()}"

    return (
        f"[{timestamp}]({where}) {operation}\n"
        f"{history['query']}\n"
        f"Output: {history['result']}"
    )


class HistoryManager:
    """
    Keeps the most recent operations of a connection and dumps them to a file.

    With a dump generator the buffer is written out whenever it reaches
    `history_length`; without one, the oldest entries are dropped instead.
    A `history_length` of None disables history.
    """

    def __init__(
        self,
        history_length: Optional[int] = 10,
        history_tolerance: Optional[int] = 5,
        history_dump_generator: Optional[AsyncHistoryDumpGenerator] = None,
        history_format_function: Callable[[HistoryItem], Any] = default_history_format_function,
        logger: Optional[Logger] = None,
    ) -> None:

        self.logger = logger or logging_getLogger(__name__)
        self.history_format_function = history_format_function
        self.history_dump_generator = history_dump_generator

        history_length = validate_none_or_non_neg_int(history_length, "history_length")
        history_tolerance = validate_none_or_non_neg_int(history_tolerance, "history_tolerance")

        if history_length is None:
            self._history = None
        else:
            self._history = CloggableList(max_length=history_length, tolerance=history_tolerance)

        self._history_tolerance = history_tolerance
        self._history_lock = asyncio.Lock()

    @property
    def records(self) -> Tuple[ExecutionLog, ...]:
        return tuple(self._history) if self._history is not None else ()

    async def append(self, item: ExecutionLog) -> None:
        """Append an item to history."""
        if self._history is None:
            return

        async with self._history_lock:
            if self.history_dump_generator is None:
                self._history.rotate(item)
                return

            if self._history.max_length == 0:
                await self._write((item,))
                return
            if not self._history.tolerable():
                await self._flush_locked()
            full = self._history.append(item)
            if full:
                await self._flush_locked()

    async def flush_to_file(self) -> None:
        """Write out and clear the buffered history, if a dump generator is set."""
        if self._history is None or self.history_dump_generator is None:
            return
        async with self._history_lock:
            await self._flush_locked()

    async def _flush_locked(self) -> None:
        items = self._history.flush()
        if items:
            await self._write(items)

    async def _write(self, items: Tuple[ExecutionLog, ...]) -> None:
        # Failing to dump never fails the operation being recorded; the
        # entries are dropped.
        try:
            dumps = []
            for item in items:
                dump = self.history_dump_generator.create(item.to_dict())
                if dump.filetype == "txt" and isinstance(dump.data, dict):
                    dump.data = self.history_format_function(dump.data)
                dumps.append(dump)
            await AsyncHistoryDump.write_many(dumps)
        except OSError as e:
            self.logger.warning(f"Failed to write {len(items)} history entries to "
                                f"{self.history_dump_generator.base_path}: {e}")

    # Property accessors
    @property
    def history(self) -> Optional[CloggableList]:
        return self._history

    @property
    def history_length(self) -> Optional[int]:
        return self._history.max_length if self._history is not None else None

    @history_length.setter
    def history_length(self, value: Optional[int]) -> None:
        value = validate_none_or_non_neg_int(value, "history_length")
        if value is None:
            self._history = None
        elif self._history is None:
            self._history = CloggableList(value, tolerance=self._history_tolerance)
        else:
            self._history.max_length = value

    @property
    def history_tolerance(self) -> Optional[int]:
        return self._history_tolerance

    @history_tolerance.setter
    def history_tolerance(self, value: Optional[int]) -> None:
        value = validate_none_or_non_neg_int(value, "history_tolerance")
        self._history_tolerance = value
        if self._history is not None:
            self._history.tolerance = value

    @property
    def history_dump_generator(self) -> Optional[AsyncHistoryDumpGenerator]:
        return self._history_dump_generator

    @history_dump_generator.setter
    def history_dump_generator(self, value: Optional[AsyncHistoryDumpGenerator]) -> None:
        if value is not None and not isinstance(value, AsyncHistoryDumpGenerator):
            raise ValueError("history_dump_generator must be an AsyncHistoryDumpGenerator instance or None")
        self._history_dump_generator = value
