from .async_history_dump import AsyncHistoryDump, OutputData
from .generator import AsyncHistoryDumpGenerator, default_time_format_function

__all__ = [
    "AsyncHistoryDump",
    "AsyncHistoryDumpGenerator",
    "OutputData",
    "default_time_format_function",
]
