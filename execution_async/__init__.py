from .execution_async import (
    run_query)
from .fetch_types import (
    ReturnType,
    FetchMany,
    Fetch,
    FetchAll,
)

__all__ = ("run_query", "Fetch", "FetchAll", "FetchMany", "ReturnType")
