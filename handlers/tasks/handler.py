"""
Tasks handler class.

Task-row operations on the project tracker sheet: listing and lookup,
keyed upsert, completion, next-id allocation, two-phase cleanup and
post-mutation verification. Every operation fetches a fresh snapshot.
"""
from __future__ import annotations

from typing import Any

from config import COMPLETE_PROGRESS, COMPLETE_STATUS, LIST_FIELDS
from core.base_handler import BaseHandler
from core.locator import canonical_key, locate
from core.models import Row, SheetStore
from core.reconcile import (
    RowPredicate,
    any_of,
    delete_planned,
    empty_key,
    key_in,
    plan_cleanup,
    position_at_least,
)
from core.two_phase_mixin import TwoPhaseOperationMixin
from core.upsert import Placement, UpsertEngine
from core.verify import (
    RowFilter,
    key_between,
    key_in_phase,
    select_rows,
    verify_attachments,
    verify_rows,
)
from lib.errors import SyncError, bad_request, not_found
from lib.task_ids import next_task_id, task_sort_key


class TasksHandler(BaseHandler, TwoPhaseOperationMixin):
    """
    Handler for task-row operations.

    Extends BaseHandler with:
    - list/get by task ID
    - keyed upsert with sibling placement (UpsertEngine)
    - two-phase cleanup of stale/duplicate rows - via TwoPhaseOperationMixin
    - row and attachment verification
    """

    def __init__(self, store: SheetStore, key_title: str | None = None) -> None:
        """Initialize TasksHandler with optional key column override."""
        super().__init__(store, key_title)
        self._preview_cache = self.get_preview_cache()

    @property
    def _scope(self) -> str:
        return str(getattr(self.store, "sheet_id", ""))

    def _task_summary(self, row: Row) -> dict[str, Any]:
        """Key, ids and the list fields of a row."""
        summary: dict[str, Any] = {
            "key": self.row_key(row),
            "row_id": row.id,
            "position": row.position,
        }
        for name in LIST_FIELDS:
            column_id = self.schema.find_column_id(name)
            if column_id is None:
                continue
            cell = row.cell(column_id)
            summary[name] = (cell.display_value if cell and cell.display_value is not None
                             else (cell.value if cell else None))
        return summary

    # === Schema ===

    def columns(self) -> dict[str, Any]:
        """List the sheet's columns with the key and primary flags."""
        op = "sheet.columns"
        error = self.load_snapshot(op)
        if error:
            return error

        cols = [
            {
                "id": c.id,
                "title": c.title,
                "type": c.type,
                "primary": c.primary,
                "key": c.id == self.schema.key_column_id,
            }
            for c in self.schema.columns
        ]
        return self._ok(op, {"sheet": self.snapshot.name, "columns": cols, "count": len(cols)})

    # === List / Get ===

    def list(self, phase: int | None = None, limit: int | None = None) -> dict[str, Any]:
        """
        List keyed tasks in task order.

        Args:
            phase: Only tasks of this phase
            limit: Maximum number of results

        Returns:
            Response with tasks and the number of rows without a key
        """
        op = "tasks.list"
        error = self.load_snapshot(op)
        if error:
            return error

        row_filter = key_in_phase(phase) if phase is not None else None
        rows = select_rows(self.snapshot, self.schema.key_column_id, row_filter)
        tasks = sorted((self._task_summary(r) for r in rows), key=lambda t: task_sort_key(t["key"]))
        unkeyed = sum(1 for r in self.snapshot.rows if canonical_key(self.row_key(r)) is None)

        if limit and limit > 0:
            tasks = tasks[:limit]

        return self._ok(op, {"tasks": tasks, "count": len(tasks), "unkeyed_rows": unkeyed})

    def get(self, key: Any) -> dict[str, Any]:
        """
        Get one task by key. Every matching row is returned so that
        duplicates are visible.
        """
        op = "tasks.get"
        if canonical_key(key) is None:
            return bad_request(op, "key is required")

        error = self.load_snapshot(op)
        if error:
            return error

        found = locate(self.snapshot, self.schema.key_column_id, key)
        if not found.found:
            return not_found(op, f"task {key!r} not found")

        matches = [
            {"row_id": r.id, "position": r.position, "cells": self.row_to_dict(r)}
            for r in found.rows
        ]
        return self._ok(op, {
            "task": matches[0],
            "matches": matches,
            "duplicate": found.ambiguous,
        })

    def next_id(self, phase: int) -> dict[str, Any]:
        """Next free task ID in a phase."""
        op = "tasks.next_id"
        error = self.load_snapshot(op)
        if error:
            return error

        keys = [self.row_key(r) for r in self.snapshot.rows]
        return self._ok(op, {"phase": int(phase), "next_id": next_task_id(phase, keys)})

    # === Upsert ===

    def upsert(
        self,
        key: Any,
        fields: dict[str, Any],
        after: Any = None,
        before: Any = None,
        dry_run: bool = False,
        only_changed: bool = False,
    ) -> dict[str, Any]:
        """
        Insert or update the task keyed `key`.

        Args:
            key: Task ID
            fields: Field name (alias or column title) -> value; only these are written
            after: Insert directly below the task with this ID
            before: Insert directly above the task with this ID
            dry_run: Return the planned request without sending it
            only_changed: Skip fields already holding the value

        Returns:
            Response with action ("insert" / "update" / "unchanged"), row_id,
            changed columns and the request
        """
        op = "tasks.upsert"
        if canonical_key(key) is None:
            return bad_request(op, "key is required")
        if not isinstance(fields, dict):
            return bad_request(op, "fields must be a dict")
        if after is not None and before is not None:
            return bad_request(op, "give either after or before, not both")

        if after is not None:
            placement = Placement.after(after)
        elif before is not None:
            placement = Placement.before(before)
        else:
            placement = Placement.at_end()

        error = self.load_snapshot(op)
        if error:
            return error

        engine = UpsertEngine(self.store, self.key_title, self.FIELD_ALIASES)
        try:
            if dry_run:
                plan = engine.plan(key, fields, placement, self.snapshot, only_changed)
                return self._ok(op, {
                    "dry_run": True,
                    "action": plan.action,
                    "key": key,
                    "row_id": plan.row_id,
                    "changed": plan.changed,
                    "request": plan.request.describe() if plan.request else None,
                })
            outcome = engine.upsert(key, fields, placement, self.snapshot, only_changed)
        except SyncError as e:
            return self._fail(op, e)

        return self._ok(op, outcome.to_dict())

    def complete(self, key: Any) -> dict[str, Any]:
        """Mark an existing task complete (status + 100%). Never inserts."""
        op = "tasks.complete"
        if canonical_key(key) is None:
            return bad_request(op, "key is required")

        error = self.load_snapshot(op)
        if error:
            return error

        if not locate(self.snapshot, self.schema.key_column_id, key).found:
            return not_found(op, f"task {key!r} not found")

        fields = {"status": COMPLETE_STATUS}
        if self.schema.find_column_id("progress") is not None:
            fields["progress"] = COMPLETE_PROGRESS

        engine = UpsertEngine(self.store, self.key_title, self.FIELD_ALIASES)
        try:
            outcome = engine.upsert(key, fields, snapshot=self.snapshot)
        except SyncError as e:
            return self._fail(op, e)
        return self._ok(op, outcome.to_dict())

    # === Cleanup (Two-phase) ===

    def cleanup(
        self,
        from_position: int | None = None,
        empty_keys: bool = False,
        keys: list[Any] | None = None,
        dedupe: bool = True,
        keep: str = "first",
        confirm_token: str | None = None,
    ) -> dict[str, Any]:
        """
        Delete stale and duplicate rows (two-phase: preview -> confirm).

        Args:
            from_position: Rows at this row number or below are stale
            empty_keys: Rows without a task ID are stale
            keys: Rows with these task IDs are stale
            dedupe: Remove all but one row of each duplicated task ID
            keep: Which duplicate survives ("first", "last",
                  "lowest_position", "highest_position")
            confirm_token: Token from the preview (confirm mode)

        Returns:
            Preview with targets and confirm_token, or the delete result
        """
        op = "tasks.cleanup"

        predicates: list[RowPredicate] = []
        if from_position is not None:
            predicates.append(position_at_least(int(from_position)))
        if empty_keys:
            predicates.append(empty_key)
        if keys:
            predicates.append(key_in(keys))
        predicate = any_of(*predicates) if predicates else None

        if not confirm_token and predicate is None and not dedupe:
            return bad_request(op, "nothing to clean: give a criterion or dedupe")

        def build_preview() -> tuple[dict[str, Any], dict[str, Any]]:
            error = self.load_snapshot(op, require_rows=True)
            if error:
                raise _PreviewAborted(error)
            try:
                plan = plan_cleanup(self.snapshot, self.schema.key_column_id, predicate, dedupe, keep)
            except ValueError as e:
                raise _PreviewAborted(bad_request(op, str(e))) from e
            by_id = {r.id: r for r in self.snapshot.rows}
            targets = [
                {**self._task_summary(by_id[rid]), "reason": plan.reasons[rid]}
                for rid in plan.row_ids
            ]
            return (
                {"row_ids": plan.row_ids},
                {"targets": targets, "count": len(targets), "survivors": plan.survivors},
            )

        def execute(payload: dict[str, Any]) -> dict[str, Any]:
            row_ids = list(payload.get("row_ids") or [])
            deleted = delete_planned(self.store, row_ids)
            return {"targeted": row_ids, "deleted": deleted, "deleted_count": len(deleted)}

        try:
            return self.two_phase(op, "cleanup", self._scope, confirm_token, build_preview, execute)
        except _PreviewAborted as aborted:
            return aborted.response

    # === Verification ===

    def _row_filter(
        self,
        phase: int | None = None,
        low: Any = None,
        high: Any = None,
    ) -> RowFilter | None:
        if phase is not None:
            return key_in_phase(phase)
        if low is not None and high is not None:
            return key_between(low, high)
        return None

    def verify(
        self,
        expected_keys: list[Any] | None = None,
        expected_count: int | None = None,
        phase: int | None = None,
        low: Any = None,
        high: Any = None,
    ) -> dict[str, Any]:
        """
        Check that the expected task rows are present.

        Args:
            expected_keys: Task IDs that must exist
            expected_count: Expected number of rows passing the filter
            phase: Restrict to one phase
            low/high: Restrict to an inclusive task-ID range
        """
        op = "tasks.verify"
        if expected_keys is None and expected_count is None:
            return bad_request(op, "expected_keys or expected_count is required")

        error = self.load_snapshot(op)
        if error:
            return error

        row_filter = self._row_filter(phase, low, high)
        if row_filter is None and expected_keys is not None and expected_count is None:
            row_filter = key_in(expected_keys)
        report = verify_rows(
            self.snapshot,
            self.schema.key_column_id,
            expected_count=expected_count,
            expected_keys=expected_keys,
            row_filter=row_filter,
        )
        return self._ok(op, report.to_dict())

    def verify_attachments(
        self,
        phase: int | None = None,
        low: Any = None,
        high: Any = None,
        keys: list[Any] | None = None,
        expected_per_row: int = 1,
        expected_total: int | None = None,
        name_suffix: str | None = None,
        delay_seconds: float | None = None,
    ) -> dict[str, Any]:
        """
        Count attachments on the selected task rows.

        Args:
            phase / low+high / keys: Row selection (one of them is required)
            expected_per_row: Minimum attachments each row should carry
            expected_total: Expected overall count
            name_suffix: Only count files ending with this (e.g. ".docx")
            delay_seconds: Pause between per-row lookups
        """
        op = "tasks.verify_attachments"
        row_filter = self._row_filter(phase, low, high)
        if row_filter is None and keys:
            row_filter = key_in(keys)
        if row_filter is None:
            return bad_request(op, "phase, low/high or keys is required")

        error = self.load_snapshot(op, require_rows=True)
        if error:
            return error

        rows = select_rows(self.snapshot, self.schema.key_column_id, row_filter)
        kwargs: dict[str, Any] = {}
        if delay_seconds is not None:
            kwargs["delay_seconds"] = delay_seconds
        try:
            report = verify_attachments(
                self.store,
                rows,
                self.schema.key_column_id,
                expected_per_row=expected_per_row,
                expected_total=expected_total,
                name_suffix=name_suffix,
                **kwargs,
            )
        except SyncError as e:
            return self._fail(op, e)
        return self._ok(op, {**report.to_dict(), "rows_checked": len(rows)})


class _PreviewAborted(Exception):
    """Carries an error response out of a preview builder."""

    def __init__(self, response: dict[str, Any]) -> None:
        super().__init__(response.get("error", {}).get("message", ""))
        self.response = response
