import aiosqlite
from aiosqlite import Cursor
from typing import Any, List, Optional, Union
import logging
from .fetch_types import ReturnType, FetchMany, Fetch
from .row_factory import column_names, row_to_dict


# === Async Execution ===

async def _fetch_results(cursor: Cursor, return_type: ReturnType, include_instance_types: bool,
    logger: logging.Logger = logging.getLogger(__name__)
                         ) -> List[dict]:
    """
    Drain an asynchronous cursor according to the fetch strategy.
    - "fetchall": one cursor.fetchall() round trip.
    - FetchMany(n): repeated cursor.fetchmany(n) until the cursor is exhausted,
      so at most n rows are buffered per round trip.
    Args:
        cursor (Cursor): An executed aiosqlite cursor.
        return_type (ReturnType): FetchAll or FetchMany.
        include_instance_types (bool): Wrap every value with its type name.
        logger (logging.Logger, optional): Logger for batch diagnostics.
    Returns:
        List[dict]: One mapping per row; empty for statements without a result set.
    Raises:
        Exception: Propagates any exceptions raised by the underlying cursor fetch methods.
    """
    columns = column_names(cursor.description)
    if not columns:
        return []

    if isinstance(return_type, FetchMany):
        rows: List[Any] = []
        batches = 0
        while True:
            batch = await cursor.fetchmany(return_type.n)
            if not batch:
                break
            batches += 1
            rows.extend(batch)
        logger.debug(f"Fetched {len(rows)} rows in {batches} batches of up to {return_type.n}.")
    else:
        rows = list(await cursor.fetchall())

    return [row_to_dict(columns, row, include_instance_types) for row in rows]

async def run_query(
    cursor: Cursor,
    query: str,
    return_type: Union[int, ReturnType, None] = None,
    include_instance_types: bool = False,
    *,
    logger = logging.getLogger(__name__),
) -> List[dict]:

    """
    Execute a single statement on a cursor and collect its rows.
    Args:
        cursor (Cursor): The aiosqlite cursor used for execution.
        query (str): The statement, passed to the backend unchanged.
        return_type (Union[int, ReturnType, None], optional): Fetch strategy or prefetch
            size. None fetches all rows at once.
        include_instance_types (bool, optional): Wrap values with their type names.
        logger (logging.Logger, optional): Logger instance. Defaults to module logger.
    Returns:
        List[dict]: Result rows as mappings.
    Raises:
        aiosqlite.Error: Any backend error, after logging it.
    Examples:
        >>> rows = await run_query(cursor, "SELECT id, name FROM users")
        >>> rows = await run_query(cursor, "SELECT * FROM big_table", return_type=500)
    """

    rt = Fetch(return_type)

    try:
        await cursor.execute(query)
        return await _fetch_results(cursor, rt, include_instance_types, logger)
    except aiosqlite.Error as db_error:
        logger.error(f"Backend error during query: {db_error}")
        raise
