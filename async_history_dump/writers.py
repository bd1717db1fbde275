# async_history_dump/writers.py
from __future__ import annotations

import os
import json
import aiofiles
from typing import Any, List, Protocol, Union


def _as_lines(item: Any) -> List[str]:
    if isinstance(item, (list, tuple)):
        return [str(part) for part in item]
    return str(item).splitlines() or [""]


# =============================================================================
# Writer Protocol (Interface)
# =============================================================================

class BaseWriter(Protocol):
    async def write_batch(self, path: str, data_list: List[Any], mode: str) -> None:
        ...


# =============================================================================
# JSON WRITER
# =============================================================================

class JSONWriter:
    """
    Keeps the file as one JSON array of records.

    "append" extends the array already on disk, "overwrite" replaces it.
    A file that is not a JSON array is treated as empty.
    """

    async def _read_json(self, path: str) -> List[Any]:
        if not os.path.exists(path):
            return []
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            txt = await f.read()
        if not txt.strip():
            return []
        try:
            existing = json.loads(txt)
        except json.JSONDecodeError:
            return []
        return existing if isinstance(existing, list) else []

    async def write_batch(self, path: str, data_list: List[Any], mode: str) -> None:
        records = await self._read_json(path) if mode == "append" else []
        records.extend(data_list)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(records, indent=2, default=str))


# =============================================================================
# TXT WRITER
# =============================================================================

class TXTWriter:
    """One or more lines per record."""

    async def write_batch(self, path: str, data_list: List[Any], mode: str) -> None:
        file_mode = "a" if mode == "append" else "w"
        async with aiofiles.open(path, file_mode, encoding="utf-8") as f:
            for item in data_list:
                for line in _as_lines(item):
                    await f.write(f"{line}\n")


WriterType = Union[JSONWriter, TXTWriter]
