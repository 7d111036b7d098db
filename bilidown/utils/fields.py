"""
Lookup-with-default helpers for loosely typed JSON payloads.

The Bilibili API omits fields, sends nulls and mixes numbers with strings, so
every access goes through one of these instead of direct indexing.
"""

from typing import Any


def get_dict(obj: Any, key: str) -> dict[str, Any]:
    value = obj.get(key) if isinstance(obj, dict) else None
    return value if isinstance(value, dict) else {}


def get_str(obj: Any, key: str, default: str = "") -> str:
    value = obj.get(key) if isinstance(obj, dict) else None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def get_int(obj: Any, key: str, default: int = 0) -> int:
    value = obj.get(key) if isinstance(obj, dict) else None
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def get_first(obj: Any, *keys: str) -> Any:
    """Returns the value of the first key present (and not None) in `obj`."""
    if not isinstance(obj, dict):
        return None
    for key in keys:
        if obj.get(key) is not None:
            return obj[key]
    return None


def get_str_list(obj: Any, *keys: str) -> tuple[str, ...]:
    """Collects the string items of the first list found under any of `keys`."""
    value = get_first(obj, *keys)
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item)
