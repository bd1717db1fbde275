# async_history_dump/async_history_dump.py
from __future__ import annotations

import os
import asyncio
from typing import Dict, Iterable, Optional, Union
from collections import defaultdict
from .writers import JSONWriter, TXTWriter, WriterType

OutputData = Union[str, int, float, bool, list, dict, tuple, type(None)]


class AsyncHistoryDump:
    """
    One history record bound for a JSON or TXT file.
    """

    filetypes = {"json", "txt"}
    modes = {"overwrite", "append"}

    _writers: Dict[str, WriterType] = {
        "json": JSONWriter(),
        "txt": TXTWriter(),
    }

    def __init__(
        self,
        path: str,
        *,
        mode: str = "append",
        filetype: str = "__autodetect__",
        data: Optional[OutputData] = None,
    ) -> None:
        self.path = self._normalize_path(path)
        self.mode = self._validate_mode(mode)
        self.filetype = self._resolve_filetype(filetype)
        self.data = data

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _normalize_path(path: str) -> str:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        return os.path.abspath(path)

    @staticmethod
    def _validate_mode(mode: str) -> str:
        if mode not in AsyncHistoryDump.modes:
            raise ValueError(f"Invalid mode: {mode}")
        return mode

    def _resolve_filetype(self, filetype: str) -> str:
        if filetype != "__autodetect__":
            if filetype not in self.filetypes:
                raise ValueError(f"Invalid filetype: {filetype}")
            return filetype

        if self.path.endswith(".json"):
            return "json"
        if self.path.endswith(".txt"):
            return "txt"

        raise ValueError("Cannot autodetect filetype from path.")

    def __repr__(self) -> str:
        return f"AsyncHistoryDump(path={self.path!r}, filetype={self.filetype}, mode={self.mode})"

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def write(self) -> None:
        if self.data is None:
            raise ValueError("No data to write")
        await self._writers[self.filetype].write_batch(self.path, [self.data], self.mode)

    @classmethod
    async def write_many(cls, dumps: Iterable["AsyncHistoryDump"]) -> None:
        """Write dumps grouped per file, one writer call per file, keeping record order."""
        groups = defaultdict(list)

        for d in dumps:
            if not isinstance(d, cls):
                raise TypeError(f"Expected AsyncHistoryDump, got {type(d).__name__}")
            groups[(d.path, d.filetype, d.mode)].append(d.data)

        await asyncio.gather(*(
            cls._writers[filetype].write_batch(path, data_list, mode)
            for (path, filetype, mode), data_list in groups.items()
        ))
