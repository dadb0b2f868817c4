"""Deep merge used by the layered configuration loader.

- Dictionaries merge recursively
- Lists replace by default
- A list whose first element starts with "+" appends to the existing list
- A list whose first element is "=" replaces explicitly
"""
from __future__ import annotations

from typing import Any, Dict, List


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dictionaries without mutating inputs.

    Example:
        >>> deep_merge({"server": {"port": 8080}}, {"server": {"host": "::1"}})
        {'server': {'port': 8080, 'host': '::1'}}
    """
    result: Dict[str, Any] = dict(base)
    for key, value in (override or {}).items():
        if key in result:
            if isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            elif isinstance(result[key], list) and isinstance(value, list):
                result[key] = merge_arrays(result[key], value)
            else:
                result[key] = value
        else:
            result[key] = value
    return result


def merge_arrays(base: List[Any], override: List[Any]) -> List[Any]:
    """Merge lists with override semantics.

    Example:
        >>> merge_arrays(["EADDRINUSE"], ["+", "port is taken"])
        ['EADDRINUSE', 'port is taken']
        >>> merge_arrays(["a"], ["b"])
        ['b']
    """
    if not override:
        return base
    first = override[0]
    if isinstance(first, str):
        if first.startswith("+"):
            return [*base, *override[1:]]
        if first == "=":
            return list(override[1:])
    return list(override)


__all__ = ["deep_merge", "merge_arrays"]
