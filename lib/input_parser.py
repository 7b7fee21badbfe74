"""
Input parsing and validation utilities.

Functions for parsing and normalizing MCP tool inputs,
handling various input formats (strings, numbers, dicts, lists).
"""
from typing import Any


def strip_quotes(s: str) -> str:
    """
    Strip outer quotes from a string.

    Args:
        s: Input string

    Returns:
        String with leading/trailing quotes removed
    """
    s = s.strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        return s[1:-1]
    return s


def coerce_str(x: Any, keys: tuple[str, ...] = ()) -> str | None:
    """
    Extract a string from various input formats.

    Handles:
    - Direct string input
    - Dict with specified keys

    Args:
        x: Input value (string, dict, or other)
        keys: Tuple of keys to try in dict order

    Returns:
        Extracted string or None if not found
    """
    if isinstance(x, str):
        return strip_quotes(x)
    if isinstance(x, dict):
        for k in keys:
            v = x.get(k)
            if isinstance(v, str):
                return strip_quotes(v)
    return None


def coerce_key(x: Any, keys: tuple[str, ...] = ("key", "task_id", "id")) -> str | int | float | None:
    """
    Extract a row key (task ID) from a tool argument.

    Numbers are passed through untouched so that numeric keys keep their
    type; strings are unquoted; dicts are searched for the given keys.
    Blank values yield None.
    """
    if isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        return x
    if isinstance(x, str):
        s = strip_quotes(x)
        return s or None
    if isinstance(x, dict):
        for k in keys:
            if k in x:
                result = coerce_key(x[k], ())
                if result is not None:
                    return result
    return None


def as_list(x: Any, id_key: str = "key") -> list[Any]:
    """
    Convert input to a list of keys.

    Handles:
    - None -> empty list
    - Single string/number -> list with one element
    - Comma separated string -> split list
    - List/tuple of strings/numbers -> list
    - List/tuple of dicts -> extract id_key from each

    Args:
        x: Input value
        id_key: Key to extract from dict items (default: "key")

    Returns:
        List of keys
    """
    if x is None:
        return []
    if isinstance(x, (list, tuple)):
        out: list[Any] = []
        for v in x:
            k = coerce_key(v, (id_key, "key", "id"))
            if k is not None:
                out.append(k)
        return out
    if isinstance(x, str):
        return [p for p in (strip_quotes(s) for s in x.split(",")) if p]
    k = coerce_key(x, (id_key,))
    return [k] if k is not None else []


def coerce_int(x: Any, keys: tuple[str, ...] = ()) -> int | None:
    """
    Extract an integer from various input formats.

    Args:
        x: Input value
        keys: Tuple of keys to try in dict order

    Returns:
        Extracted integer or None if not found/invalid
    """
    if isinstance(x, bool):
        return None
    if isinstance(x, int):
        return x
    if isinstance(x, float) and x.is_integer():
        return int(x)
    if isinstance(x, str):
        try:
            return int(strip_quotes(x))
        except ValueError:
            return None
    if isinstance(x, dict):
        for k in keys:
            v = x.get(k)
            result = coerce_int(v, ())
            if result is not None:
                return result
    return None


def coerce_bool(x: Any, keys: tuple[str, ...] = ()) -> bool | None:
    """
    Extract a boolean from various input formats.

    Args:
        x: Input value
        keys: Tuple of keys to try in dict order

    Returns:
        Extracted boolean or None if not found/invalid
    """
    if isinstance(x, bool):
        return x
    if isinstance(x, str):
        lower = x.lower().strip()
        if lower in ("true", "1", "yes"):
            return True
        if lower in ("false", "0", "no"):
            return False
        return None
    if isinstance(x, dict):
        for k in keys:
            v = x.get(k)
            result = coerce_bool(v, ())
            if result is not None:
                return result
    return None


def coerce_fields(x: Any) -> dict[str, Any] | None:
    """
    Extract the field map for an upsert.

    Accepts a dict, or a dict wrapping one under "fields"/"updates".
    Returns None when no usable mapping is present.
    """
    if not isinstance(x, dict):
        return None
    for k in ("fields", "updates"):
        inner = x.get(k)
        if isinstance(inner, dict):
            return dict(inner)
    return dict(x) if x else None
