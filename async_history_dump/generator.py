from __future__ import annotations
from datetime import datetime
from typing import Callable, Optional
from .async_history_dump import AsyncHistoryDump, OutputData


def default_time_format_function(time_data: datetime) -> str:
    return time_data.strftime("%Y-%m-%d %H:%M:%S")


class AsyncHistoryDumpGenerator:
    """
    Factory for AsyncHistoryDump instances sharing one target file.

    With `log_time` set, dict records get a timestamp under `timestamp_key`
    and anything else is wrapped as {"data": ..., timestamp_key: ...}.
    """
    __slots__ = (
        "base_path",
        "filetype",
        "mode",
        "log_time",
        "time_format_function",
        "timestamp_key",
    )

    def __init__(
        self,
        base_path: str,
        *,
        filetype: str = "__autodetect__",
        mode: str = "append",
        log_time: bool = False,
        time_format_function: Callable[[datetime], str] = default_time_format_function,
        timestamp_key: str = "timestamp",
    ) -> None:
        self.base_path = base_path
        self.filetype = filetype
        self.mode = mode
        self.log_time = log_time
        self.time_format_function = time_format_function
        self.timestamp_key = timestamp_key

    def __repr__(self) -> str:
        return (
            f"AsyncHistoryDumpGenerator(base_path={self.base_path}, "
            f"mode={self.mode}, filetype={self.filetype}, log_time={self.log_time})"
        )

    def _add_timestamp(self, data: OutputData) -> OutputData:
        time_value = self.time_format_function(datetime.now())
        if isinstance(data, dict):
            return {**data, self.timestamp_key: time_value}
        return {"data": data, self.timestamp_key: time_value}

    def create(self, data: OutputData) -> AsyncHistoryDump:
        """
        Produce a configured AsyncHistoryDump instance.
        """
        if self.log_time:
            data = self._add_timestamp(data)

        return AsyncHistoryDump(
            path=self.base_path,
            mode=self.mode,
            filetype=self.filetype,
            data=data,
        )

    def __call__(self, *args) -> AsyncHistoryDump | tuple[AsyncHistoryDump, ...]:
        """
        gen(x) -> one dump
        gen(x, y, z) -> tuple of dumps
        """
        if not args:
            raise ValueError("No data provided to AsyncHistoryDumpGenerator.")

        if len(args) == 1:
            return self.create(args[0])

        return tuple(self.create(d) for d in args)
