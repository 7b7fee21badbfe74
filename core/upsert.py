"""
Keyed upsert of task rows.

Insert when the key is absent, partial update when exactly one row has it,
refuse when several do. Every check runs before a request is built, so a
failed upsert never leaves a half-written row behind. Re-running the same
upsert takes the update path and leaves one row.

Known limitation: the snapshot is read, then the mutation is sent. Another
writer changing the sheet in between is not detected.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from config import DEFAULT_KEY_COLUMN, TASK_FIELDS
from core.locator import canonical_key, locate
from core.models import InsertRequest, InsertPosition, SheetStore, Snapshot, UpdateRequest
from core.schema import SheetSchema, resolve_schema
from lib.common import log
from lib.types import ColumnSpec, FieldMap
from lib.errors import AnchorNotFoundError, DuplicateKeyError, RemoteRejectedError


@dataclass(frozen=True)
class Placement:
    """Where a new row goes: next to the row holding `anchor_key`, or at the end."""
    anchor_key: Any = None
    position: InsertPosition = "bottom"

    @classmethod
    def after(cls, key: Any) -> Placement:
        return cls(anchor_key=key, position="after")

    @classmethod
    def before(cls, key: Any) -> Placement:
        return cls(anchor_key=key, position="before")

    @classmethod
    def at_end(cls) -> Placement:
        return cls()


@dataclass
class UpsertPlan:
    action: str  # "insert" | "update" | "unchanged"
    key: Any
    request: InsertRequest | UpdateRequest | None = None
    row_id: int | None = None
    changed: list[str] = field(default_factory=list)


@dataclass
class UpsertOutcome:
    action: str
    key: Any
    row_id: int | None
    changed: list[str] = field(default_factory=list)
    request: InsertRequest | UpdateRequest | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "key": self.key,
            "row_id": self.row_id,
            "changed": self.changed,
            "request": self.request.describe() if self.request else None,
        }


def plan_upsert(
    snapshot: Snapshot,
    schema: SheetSchema,
    key: Any,
    fields: FieldMap,
    placement: Placement | None = None,
    only_changed: bool = False,
) -> UpsertPlan:
    """
    Decide between insert and update and build the single request to send.

    Args:
        snapshot: Freshly fetched sheet
        schema: Schema resolved from the same snapshot
        key: Target row key
        fields: Field name -> value; only these columns are written
        placement: Anchor for inserts (default: bottom of sheet)
        only_changed: Drop fields already holding the requested value

    Raises:
        ValueError: If the key is blank
        DuplicateKeyError: If the key (or the anchor key) matches several rows
        AnchorNotFoundError: If the placement anchor does not exist
        UnknownFieldError: If a field has no column
    """
    if canonical_key(key) is None:
        raise ValueError("key is required")

    key_column_id = schema.key_column_id
    cells = schema.map_fields(fields)
    if key_column_id in cells:
        log(f"ignoring write to key column {schema.key_column.title!r}; the key comes from the upsert")
        cells.pop(key_column_id)
    titles = {column_id: schema.title_of(column_id) for column_id in cells}

    found = locate(snapshot, key_column_id, key)
    if found.ambiguous:
        raise DuplicateKeyError(key, found.row_ids)

    if found.found:
        row = found.first
        changed = [titles[cid] for cid, value in cells.items() if row.value(cid) != value]
        if only_changed:
            cells = {cid: value for cid, value in cells.items() if titles[cid] in changed}
            if not cells:
                return UpsertPlan(action="unchanged", key=key, row_id=row.id)
        return UpsertPlan(
            action="update",
            key=key,
            request=UpdateRequest(row_id=row.id, cells=cells),
            row_id=row.id,
            changed=changed,
        )

    placement = placement or Placement.at_end()
    anchor_id = None
    if placement.position != "bottom":
        anchor = locate(snapshot, key_column_id, placement.anchor_key)
        if not anchor.found:
            raise AnchorNotFoundError(placement.anchor_key)
        if anchor.ambiguous:
            raise DuplicateKeyError(placement.anchor_key, anchor.row_ids)
        anchor_id = anchor.first.id

    insert_cells = {key_column_id: key, **cells}
    return UpsertPlan(
        action="insert",
        key=key,
        request=InsertRequest(cells=insert_cells, anchor_id=anchor_id, position=placement.position),
        changed=list(titles.values()),
    )


class UpsertEngine:
    """Runs keyed upserts against a store, one fresh snapshot per call."""

    def __init__(
        self,
        store: SheetStore,
        key_title: str = DEFAULT_KEY_COLUMN,
        aliases: ColumnSpec | None = None,
    ) -> None:
        self.store = store
        self.key_title = key_title
        self.aliases = TASK_FIELDS if aliases is None else aliases

    def plan(
        self,
        key: Any,
        fields: FieldMap,
        placement: Placement | None = None,
        snapshot: Snapshot | None = None,
        only_changed: bool = False,
    ) -> UpsertPlan:
        """Dry run: fetch (unless given a snapshot) and plan without sending."""
        snapshot = snapshot or self.store.fetch_sheet()
        schema = resolve_schema(snapshot.columns, self.key_title, self.aliases)
        return plan_upsert(snapshot, schema, key, fields, placement, only_changed)

    def upsert(
        self,
        key: Any,
        fields: FieldMap,
        placement: Placement | None = None,
        snapshot: Snapshot | None = None,
        only_changed: bool = False,
    ) -> UpsertOutcome:
        """
        Insert or update the row keyed `key` and send exactly one request.

        Raises:
            RemoteRejectedError: If the store refuses the mutation (not retried)
            and everything plan_upsert raises.
        """
        plan = self.plan(key, fields, placement, snapshot, only_changed)

        if plan.action == "unchanged":
            log(f"upsert {key!r}: row {plan.row_id} already up to date")
            return UpsertOutcome(action="unchanged", key=key, row_id=plan.row_id)

        if plan.action == "insert":
            result = self.store.insert_row(plan.request)
            log(f"upsert {key!r}: inserted row {result.row_id}")
            return UpsertOutcome(
                action="insert",
                key=key,
                row_id=result.row_id,
                changed=plan.changed,
                request=plan.request,
            )

        result = self.store.update_rows([plan.request])
        if not result.ok:
            raise RemoteRejectedError(
                f"update of row {plan.row_id} rejected",
                payload=result.failed,
            )
        log(f"upsert {key!r}: updated row {plan.row_id} ({', '.join(plan.changed) or 'no changes'})")
        return UpsertOutcome(
            action="update",
            key=key,
            row_id=plan.row_id,
            changed=plan.changed,
            request=plan.request,
        )
