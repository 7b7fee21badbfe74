"""
Sheet utility functions.
Header matching and cell value rendering shared by the resolver and handlers.
"""
import unicodedata
from typing import Any


def norm_header(s: str) -> str:
    """
    Normalize a header string for matching.
    - NFKC normalization
    - Lowercase
    - Remove all whitespace
    """
    if not s:
        return ""
    result = str(s).strip().lower()
    result = unicodedata.normalize("NFKC", result)
    result = result.replace("　", "").replace(" ", "")
    return result


def pick_col(headers: list[str], candidates: list[str]) -> int:
    """
    Find the column index for a header that matches any of the candidates.
    Exact titles win over normalized matches. Returns -1 if not found.
    """
    for c in candidates:
        if c in headers:
            return headers.index(c)
    normalized_headers = [norm_header(h) for h in headers]
    for c in candidates:
        key = norm_header(c)
        if key and key in normalized_headers:
            return normalized_headers.index(key)
    return -1


def cell_text(value: Any, display_value: str | None = None) -> str:
    """
    Render a cell for humans: the display value when the store sent one,
    otherwise the raw value. Empty cells render as "".
    """
    if display_value is not None:
        return str(display_value)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
