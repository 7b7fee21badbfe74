"""
Cleanup of stale and duplicate rows.

A cleanup pass selects rows from one snapshot, either because a staleness
predicate holds (row past a known-good position, empty key) or because
the row repeats a key already held by a survivor. The survivor policy is
explicit: callers pick which row of a duplicate group stays.
Deleting rows that are already gone counts as success, so the pass can
be re-run freely; a second run over an unchanged sheet targets nothing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Union

from config import DEFAULT_KEY_COLUMN
from core.locator import build_key_index, canonical_key, row_key
from core.models import Row, SheetStore, Snapshot
from core.schema import resolve_schema
from lib.common import log

RowPredicate = Callable[[Row, Any], bool]
SurvivorPolicy = Union[str, Callable[[list[Row]], Row]]

REASON_PREDICATE = "predicate"
REASON_DUPLICATE = "duplicate"


# === Predicates ===

def position_at_least(n: int) -> RowPredicate:
    """Rows at position n or below it (1-based, like the sheet's row numbers)."""
    def predicate(row: Row, key: Any) -> bool:
        return row.position >= n
    return predicate


def empty_key(row: Row, key: Any) -> bool:
    """Rows with nothing in the key column."""
    return canonical_key(key) is None


def key_in(keys: Iterable[Any]) -> RowPredicate:
    """Rows whose key is one of `keys`."""
    wanted = {canonical_key(k) for k in keys} - {None}

    def predicate(row: Row, key: Any) -> bool:
        return canonical_key(key) in wanted
    return predicate


def any_of(*predicates: RowPredicate) -> RowPredicate:
    """Rows matching at least one of the predicates."""
    def predicate(row: Row, key: Any) -> bool:
        return any(p(row, key) for p in predicates)
    return predicate


# === Survivor policies ===

SURVIVOR_POLICIES: dict[str, Callable[[list[Row]], Row]] = {
    "first": lambda rows: rows[0],
    "last": lambda rows: rows[-1],
    "lowest_position": lambda rows: min(rows, key=lambda r: r.position),
    "highest_position": lambda rows: max(rows, key=lambda r: r.position),
}


def survivor_picker(keep: SurvivorPolicy) -> Callable[[list[Row]], Row]:
    """Resolve a policy name or callable. Unknown names raise ValueError."""
    if callable(keep):
        return keep
    try:
        return SURVIVOR_POLICIES[keep]
    except KeyError:
        raise ValueError(
            f"unknown survivor policy {keep!r} (expected one of {', '.join(SURVIVOR_POLICIES)})"
        ) from None


# === Planning ===

@dataclass
class CleanupPlan:
    row_ids: list[int] = field(default_factory=list)
    reasons: dict[int, str] = field(default_factory=dict)
    survivors: dict[str, int] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.row_ids


def plan_cleanup(
    snapshot: Snapshot,
    key_column_id: int,
    predicate: RowPredicate | None = None,
    dedupe: bool = True,
    keep: SurvivorPolicy = "first",
) -> CleanupPlan:
    """
    Select the rows to delete from one snapshot.

    Args:
        snapshot: Freshly fetched sheet
        key_column_id: Column holding the row key
        predicate: Staleness test (row, key) -> bool; None selects nothing by itself
        dedupe: Also target every non-survivor of a duplicated key
        keep: Survivor policy name ("first", "last", "lowest_position",
              "highest_position") or callable(rows) -> row

    Returns:
        CleanupPlan with ids in snapshot order. The survivor of a duplicate
        group is never targeted, even when the predicate matches it.
    """
    pick = survivor_picker(keep)
    plan = CleanupPlan()
    protected: set[int] = set()
    duplicates: set[int] = set()

    for canon, rows in build_key_index(snapshot, key_column_id).items():
        if len(rows) < 2:
            continue
        survivor = pick(rows)
        plan.survivors[canon] = survivor.id
        protected.add(survivor.id)
        if dedupe:
            duplicates.update(r.id for r in rows if r.id != survivor.id)

    for row in snapshot.rows:
        if row.id in protected:
            continue
        if row.id in duplicates:
            plan.row_ids.append(row.id)
            plan.reasons[row.id] = REASON_DUPLICATE
        elif predicate is not None and predicate(row, row_key(row, key_column_id)):
            plan.row_ids.append(row.id)
            plan.reasons[row.id] = REASON_PREDICATE

    return plan


@dataclass
class CleanupResult:
    plan: CleanupPlan
    deleted: list[int] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "targeted": self.plan.row_ids,
            "reasons": {str(k): v for k, v in self.plan.reasons.items()},
            "survivors": self.plan.survivors,
            "deleted": self.deleted,
            "deleted_count": len(self.deleted),
            "dry_run": self.dry_run,
        }


def delete_planned(store: SheetStore, row_ids: list[int]) -> list[int]:
    """One bulk delete for the whole id set; nothing is sent for an empty set."""
    if not row_ids:
        log("cleanup: nothing to delete")
        return []
    result = store.delete_rows(list(row_ids))
    log(f"cleanup: deleted {result.count} of {len(row_ids)} targeted rows")
    return result.row_ids


class Reconciler:
    """Fetch, plan and bulk-delete in one pass."""

    def __init__(self, store: SheetStore, key_title: str = DEFAULT_KEY_COLUMN) -> None:
        self.store = store
        self.key_title = key_title

    def plan(
        self,
        predicate: RowPredicate | None = None,
        dedupe: bool = True,
        keep: SurvivorPolicy = "first",
        snapshot: Snapshot | None = None,
    ) -> CleanupPlan:
        snapshot = snapshot or self.store.fetch_sheet()
        schema = resolve_schema(snapshot.columns, self.key_title)
        return plan_cleanup(snapshot, schema.key_column_id, predicate, dedupe, keep)

    def run(
        self,
        predicate: RowPredicate | None = None,
        dedupe: bool = True,
        keep: SurvivorPolicy = "first",
        dry_run: bool = False,
    ) -> CleanupResult:
        plan = self.plan(predicate, dedupe, keep)
        if dry_run:
            return CleanupResult(plan=plan, dry_run=True)
        return CleanupResult(plan=plan, deleted=delete_planned(self.store, plan.row_ids))
