"""
Row lookup by key.

Keys are compared in canonical form: numbers by their shortest decimal
text (so 1.9 and "1.9" are the same key), strings byte-for-byte. The
display value is checked as a fallback because the store may render a
numeric key as text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.models import Cell, Row, Snapshot


def canonical_key(value: Any) -> str | None:
    """
    Canonical text form of a key value.

    1.9 -> "1.9", 2.0 -> "2", True -> "true", "1.10" -> "1.10".
    None and "" are not keys and map to None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    text = str(value)
    return text if text != "" else None


def key_matches(cell: Cell | None, target: Any) -> bool:
    """Check a key cell against a target key."""
    if cell is None:
        return False
    wanted = canonical_key(target)
    if wanted is None:
        return False
    if canonical_key(cell.value) == wanted:
        return True
    return cell.display_value is not None and cell.display_value == wanted


def row_key(row: Row, key_column_id: int) -> Any:
    """Raw key value of a row (None when the key cell is empty)."""
    cell = row.cell(key_column_id)
    if cell is None or cell.is_empty:
        return None
    return cell.value


@dataclass
class LocateResult:
    """Every row carrying the key, in snapshot order."""
    key: Any
    rows: list[Row] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.rows)

    @property
    def ambiguous(self) -> bool:
        return len(self.rows) > 1

    @property
    def first(self) -> Row | None:
        return self.rows[0] if self.rows else None

    @property
    def row_ids(self) -> list[int]:
        return [r.id for r in self.rows]


def locate(snapshot: Snapshot, key_column_id: int, key: Any) -> LocateResult:
    """
    Find the rows whose key cell matches `key`.

    Absence is not an error: the result is simply empty. Duplicates are
    all returned so the caller can decide what to do with them.
    """
    result = LocateResult(key=key)
    if canonical_key(key) is None:
        return result
    for row in snapshot.rows:
        if key_matches(row.cell(key_column_id), key):
            result.rows.append(row)
    return result


def build_key_index(snapshot: Snapshot, key_column_id: int) -> dict[str, list[Row]]:
    """
    Canonical key -> rows (snapshot order). Rows with empty keys are skipped.
    Built from one snapshot and thrown away with it.
    """
    index: dict[str, list[Row]] = {}
    for row in snapshot.rows:
        cell = row.cell(key_column_id)
        if cell is None or cell.is_empty:
            continue
        canon = canonical_key(cell.value)
        if canon is None:
            continue
        index.setdefault(canon, []).append(row)
    return index
