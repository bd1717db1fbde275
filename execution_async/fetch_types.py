from typing import Optional, Union



# === ReturnType Classes ===

class ReturnType:
    """Fetch strategy used when draining a cursor. `type` names the strategy."""
    type: str


class FetchAll(ReturnType):
    def __init__(self): self.type = "fetchall"
    def __repr__(self): return "FetchAll()"
    def __eq__(self, value): return isinstance(value, FetchAll)
    def __hash__(self): return hash(self.type)

class FetchMany(ReturnType):
    """Drain the cursor in batches of `n` rows, one round trip per batch."""
    def __init__(self, n: Optional[int] = None):
        if n is None or isinstance(n, bool) or not isinstance(n, int) or n < 1:
            raise ValueError("FetchMany requires a positive integer n >= 1.")
        self.n = n
        self.type = "fetchmany"
    def __repr__(self): return f"FetchMany(n={self.n})"
    def __eq__(self, value): return isinstance(value, FetchMany) and self.n == value.n
    def __hash__(self): return hash((self.type, self.n))

# === Utility Functions ===

def Fetch(arg: Optional[Union[int, ReturnType]] = None) -> ReturnType:
    """
    Determines the fetch strategy for a query from its prefetch size.
    Args:
        arg (Optional[Union[int, ReturnType]]): The fetch specifier. Can be:
            - None: Returns a FetchAll instance.
            - int: The prefetch size, i.e. rows per batch.
            - ReturnType: Returned unchanged.
    Returns:
        ReturnType: FetchAll or FetchMany.
    Raises:
        ValueError: If the prefetch size is below 1.
        TypeError: If the argument type is not supported.
    """

    if arg is None: return FetchAll()
    if isinstance(arg, ReturnType): return arg
    if isinstance(arg, int) and not isinstance(arg, bool): return FetchMany(arg)
    raise TypeError(f"Invalid argument type: {type(arg).__name__}")
