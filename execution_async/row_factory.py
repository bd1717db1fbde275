"""
Row conversion for query results.

Rows leave the backend as tuples and cross the driver boundary as mappings
from column name to value. When instance types are requested each value is
wrapped together with the name of its type.
"""
from typing import Any, Optional, Sequence, Tuple

# sqlite3 hands back one of these Python types for every column value.
_TYPE_NAMES = {
    type(None): "null",
    bool: "boolean",
    int: "integer",
    float: "double",
    str: "string",
    bytes: "blob",
}


def value_type_name(value: Any) -> str:
    """
    Name the type of a backend value.

    Examples:
        >>> value_type_name(3)
        'integer'
        >>> value_type_name("x")
        'string'
        >>> value_type_name(None)
        'null'
    """
    return _TYPE_NAMES.get(type(value), type(value).__name__.lower())


def typed_value(value: Any) -> dict:
    """Wrap a value with its type name: {"value": ..., "type": ...}."""
    return {"value": value, "type": value_type_name(value)}


def column_names(description: Optional[Sequence[Tuple]]) -> list:
    """Extract column names from a DB-API cursor description."""
    if not description:
        return []
    return [column[0] for column in description]


def row_to_dict(columns: Sequence[str], row: Sequence[Any], include_instance_types: bool = False) -> dict:
    """
    Map a row tuple onto its column names.

    Examples:
        >>> row_to_dict(["id", "name"], (1, "Alice"))
        {'id': 1, 'name': 'Alice'}
        >>> row_to_dict(["id"], (1,), include_instance_types=True)
        {'id': {'value': 1, 'type': 'integer'}}
    """
    if include_instance_types:
        return {key: typed_value(value) for key, value in zip(columns, row)}
    return {key: value for key, value in zip(columns, row)}
