"""
Common utility functions.
Response envelope, number coercion and stderr logging.
"""
import sys
from enum import Enum
from typing import Any


def log(*a: Any) -> None:
    """Write a diagnostic line to stderr (stdout belongs to the MCP transport)."""
    print(*a, file=sys.stderr, flush=True)


def to_number_or_none(val: Any) -> int | float | None:
    """
    Convert a value to a number, or return None if not possible.
    Handles empty strings, percent strings ("100%") and None gracefully.
    """
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return val
    s = str(val).strip()
    if s == "":
        return None
    scale = 1
    if s.endswith("%"):
        s = s[:-1].strip()
        scale = 100
    try:
        f = float(s) / scale
    except ValueError:
        return None
    # Return int if it's a whole number
    if f == int(f):
        return int(f)
    return f


def ok(op: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a successful response."""
    return {"ok": True, "op": op, "data": data or {}}


def ng(op: str, code: str, message: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create an error response."""
    if isinstance(code, Enum):
        code = code.value
    error: dict[str, Any] = {"code": code, "message": message}
    if extra:
        error.update(extra)
    return {"ok": False, "op": op, "error": error}
