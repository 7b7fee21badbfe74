"""
Post-mutation verification.

Re-reads the sheet and compares what is there with what the caller
expected: rows matching a filter, or attachments across a set of rows.
Purely observational; nothing here writes to the store.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from config import ATTACHMENT_REQUEST_DELAY_SECONDS, DEFAULT_KEY_COLUMN
from core.locator import build_key_index, canonical_key, row_key
from core.models import Row, SheetStore, Snapshot
from core.schema import resolve_schema
from lib import task_ids
from lib.common import log

RowFilter = Callable[[Row, Any], bool]


def key_in_phase(phase: int) -> RowFilter:
    """Rows whose task ID belongs to `phase`."""
    def row_filter(row: Row, key: Any) -> bool:
        return task_ids.in_phase(key, phase)
    return row_filter


def key_between(low: Any, high: Any) -> RowFilter:
    """Rows whose task ID lies in [low, high] in task order."""
    def row_filter(row: Row, key: Any) -> bool:
        return task_ids.between(key, low, high)
    return row_filter


@dataclass
class VerificationReport:
    expected: int
    actual: int
    missing: list[Any] = field(default_factory=list)
    unexpected: list[Any] = field(default_factory=list)
    duplicates: list[Any] = field(default_factory=list)
    deficient: list[dict[str, Any]] = field(default_factory=list)

    @property
    def match(self) -> bool:
        return (
            self.expected == self.actual
            and not self.missing
            and not self.unexpected
            and not self.deficient
        )

    def diff_lines(self) -> list[str]:
        """Human-readable description of every discrepancy."""
        lines: list[str] = []
        if self.expected != self.actual:
            lines.append(f"expected {self.expected}, found {self.actual}")
        lines.extend(f"missing: {k}" for k in self.missing)
        lines.extend(f"unexpected: {k}" for k in self.unexpected)
        lines.extend(f"duplicate key: {k}" for k in self.duplicates)
        lines.extend(
            f"deficient: {d['key']} (row {d['row_id']}) has {d['actual']}, expected {d['expected']}"
            for d in self.deficient
        )
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "match": self.match,
            "expected": self.expected,
            "actual": self.actual,
            "missing": self.missing,
            "unexpected": self.unexpected,
            "duplicates": self.duplicates,
            "deficient": self.deficient,
            "diff": self.diff_lines(),
        }


def select_rows(
    snapshot: Snapshot,
    key_column_id: int,
    row_filter: RowFilter | None = None,
) -> list[Row]:
    """Keyed rows passing the filter, in snapshot order."""
    selected: list[Row] = []
    for row in snapshot.rows:
        key = row_key(row, key_column_id)
        if canonical_key(key) is None:
            continue
        if row_filter is None or row_filter(row, key):
            selected.append(row)
    return selected


def verify_rows(
    snapshot: Snapshot,
    key_column_id: int,
    expected_count: int | None = None,
    expected_keys: Iterable[Any] | None = None,
    row_filter: RowFilter | None = None,
) -> VerificationReport:
    """
    Count keyed rows passing `row_filter` and compare with expectations.

    Args:
        snapshot: Freshly fetched sheet
        key_column_id: Column holding the row key
        expected_count: Expected number of rows (defaults to len(expected_keys))
        expected_keys: Keys that must be present; others passing the filter
                       are reported as unexpected
        row_filter: (row, key) -> bool; None keeps every keyed row

    Returns:
        VerificationReport
    """
    rows = select_rows(snapshot, key_column_id, row_filter)
    present: dict[str, Any] = {}
    for row in rows:
        key = row_key(row, key_column_id)
        present.setdefault(canonical_key(key), key)

    keys = list(expected_keys) if expected_keys is not None else None
    if expected_count is None:
        expected_count = len(keys) if keys is not None else len(rows)

    report = VerificationReport(expected=expected_count, actual=len(rows))
    if keys is not None:
        wanted = {canonical_key(k) for k in keys}
        report.missing = [k for k in keys if canonical_key(k) not in present]
        report.unexpected = [key for canon, key in present.items() if canon not in wanted]

    selected_ids = {r.id for r in rows}
    for canon, group in build_key_index(snapshot, key_column_id).items():
        if len([r for r in group if r.id in selected_ids]) > 1:
            report.duplicates.append(present.get(canon, canon))

    if not report.match:
        log("verify rows:", "; ".join(report.diff_lines()))
    return report


def verify_attachments(
    store: SheetStore,
    rows: Iterable[Row],
    key_column_id: int,
    expected_per_row: int = 1,
    expected_total: int | None = None,
    name_suffix: str | None = None,
    delay_seconds: float = ATTACHMENT_REQUEST_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> VerificationReport:
    """
    Count attachments row by row and flag rows holding fewer than expected.

    One lookup per row, sequential, with `delay_seconds` between lookups to
    stay under the store's rate limits.

    Args:
        store: Store to query
        rows: Rows to inspect (usually from select_rows on a fresh snapshot)
        key_column_id: Column holding the row key (for reporting)
        expected_per_row: Minimum attachments each row should carry
        expected_total: Expected overall count (defaults to per-row * rows)
        name_suffix: Only count attachments whose name ends with this (e.g. ".docx")
        delay_seconds: Pause between lookups
        sleep: Sleep function, injectable for tests
    """
    rows = list(rows)
    if expected_total is None:
        expected_total = expected_per_row * len(rows)

    total = 0
    deficient: list[dict[str, Any]] = []
    for i, row in enumerate(rows):
        if i and delay_seconds > 0:
            sleep(delay_seconds)
        attachments = store.fetch_attachments(row.id)
        if name_suffix:
            suffix = name_suffix.lower()
            attachments = [a for a in attachments if a.name.lower().endswith(suffix)]
        count = len(attachments)
        total += count
        if count < expected_per_row:
            deficient.append({
                "key": row_key(row, key_column_id),
                "row_id": row.id,
                "expected": expected_per_row,
                "actual": count,
            })

    report = VerificationReport(expected=expected_total, actual=total, deficient=deficient)
    if not report.match:
        log("verify attachments:", "; ".join(report.diff_lines()))
    return report


class Verifier:
    """Verification against a fresh fetch."""

    def __init__(self, store: SheetStore, key_title: str = DEFAULT_KEY_COLUMN) -> None:
        self.store = store
        self.key_title = key_title

    def _fresh(self) -> tuple[Snapshot, int]:
        snapshot = self.store.fetch_sheet()
        schema = resolve_schema(snapshot.columns, self.key_title)
        return snapshot, schema.key_column_id

    def rows(
        self,
        expected_count: int | None = None,
        expected_keys: Iterable[Any] | None = None,
        row_filter: RowFilter | None = None,
    ) -> VerificationReport:
        snapshot, key_column_id = self._fresh()
        return verify_rows(snapshot, key_column_id, expected_count, expected_keys, row_filter)

    def attachments(
        self,
        row_filter: RowFilter | None = None,
        expected_per_row: int = 1,
        expected_total: int | None = None,
        name_suffix: str | None = None,
        delay_seconds: float = ATTACHMENT_REQUEST_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> VerificationReport:
        snapshot, key_column_id = self._fresh()
        rows = select_rows(snapshot, key_column_id, row_filter)
        return verify_attachments(
            self.store, rows, key_column_id,
            expected_per_row=expected_per_row,
            expected_total=expected_total,
            name_suffix=name_suffix,
            delay_seconds=delay_seconds,
            sleep=sleep,
        )
