from typing import Optional, Tuple, Union


def convertible_to_non_neg_int(value) -> Tuple[bool, int]:
    if isinstance(value, bool):
        return (False, 0)
    try:
        ivalue = int(value)
        if ivalue < 0 or ivalue != value:
            return (False, 0)
        return (True, ivalue)
    except (TypeError, ValueError):
        return (False, 0)


def validate_non_neg_int(value, name: str = "value") -> int:
    can_convert, ivalue = convertible_to_non_neg_int(value)
    if not can_convert:
        raise ValueError(f"{name} must be a non-negative integer")
    return ivalue


def validate_none_or_non_neg_int(value, name: str = "value") -> Optional[int]:
    if value is None:
        return None
    can_convert, ivalue = convertible_to_non_neg_int(value)
    if not can_convert:
        raise ValueError(f"{name} must be a non-negative integer or None")
    return ivalue


def millis_to_seconds(millis: Union[int, float]) -> float:
    """
    Convert a millisecond duration to seconds.

    Args:
        millis: Non-negative duration in milliseconds.

    Returns:
        float: The duration in seconds.

    Raises:
        ValueError: If millis is negative or not a number.
    """
    if isinstance(millis, bool) or not isinstance(millis, (int, float)):
        raise ValueError(f"Duration must be a number of milliseconds, got {millis!r}")
    if millis < 0:
        raise ValueError(f"Duration must be non-negative, got {millis}")
    return millis / 1000.0


def split_address(address: str) -> Tuple[str, int]:
    """
    Split a "host:port" address.

    Raises:
        ValueError: If the address has no host or no numeric port in 1-65535.
    """
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")
    host, sep, port = address.strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Address must look like 'host:port', got {address!r}")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"Port out of range in address {address!r}")
    return host, port_number
