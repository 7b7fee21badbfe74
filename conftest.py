"""
Pytest configuration and fixtures for MCP server tests.

Provides an in-memory SheetStore (FakeSheetStore) holding a small task
tracker, raw Smartsheet payloads for client tests, and canned handler
responses for tool tests.
"""
import os
import pytest
from dataclasses import replace
from typing import Any
from unittest.mock import MagicMock

# Set test environment variables before importing anything
os.environ.setdefault("SMARTSHEET_API_TOKEN", "test-token")
os.environ.setdefault("SMARTSHEET_SHEET_ID", "4242")

from core.base_handler import BaseHandler
from core.models import (
    Attachment,
    Cell,
    Column,
    DeleteResult,
    InsertResult,
    Row,
    Snapshot,
    UpdateResult,
)

# Column ids of the sample tracker
NAME, KEY, STATUS, PROGRESS, PRIORITY, ASSIGNEE = 100, 101, 102, 103, 104, 105

TRACKER_COLUMNS = (
    Column(id=NAME, title="Task Name", type="TEXT_NUMBER", primary=True),
    Column(id=KEY, title="Task ID"),
    Column(id=STATUS, title="Status", type="PICKLIST"),
    Column(id=PROGRESS, title="% Complete"),
    Column(id=PRIORITY, title="Priority", type="PICKLIST"),
    Column(id=ASSIGNEE, title="Assigned To", type="CONTACT_LIST"),
)


def make_row(row_id: int, position: int, **values: Any) -> Row:
    """Row from column-id keyword names: make_row(1, 1, key="1.1", name="Setup")."""
    ids = {
        "name": NAME,
        "key": KEY,
        "status": STATUS,
        "progress": PROGRESS,
        "priority": PRIORITY,
        "assignee": ASSIGNEE,
    }
    return Row(
        id=row_id,
        position=position,
        cells=tuple(Cell(column_id=ids[k], value=v) for k, v in values.items()),
    )


def tracker_rows(count: int = 11) -> list[Row]:
    """Rows keyed 1.1 .. 1.<count>, ids 1001.., positions 1.."""
    return [
        make_row(1000 + i, i, key=f"1.{i}", name=f"Task {i}", status="Not Started", priority="Medium")
        for i in range(1, count + 1)
    ]


class FakeSheetStore:
    """
    In-memory SheetStore.

    Applies inserts, updates and deletes the way the real sheet does
    (sibling placement, partial cell writes, renumbering) and records
    every call in `calls`.
    """

    def __init__(
        self,
        rows: list[Row] | None = None,
        columns: tuple[Column, ...] = TRACKER_COLUMNS,
        attachments: dict[int, list[Attachment]] | None = None,
        sheet_id: str = "4242",
    ) -> None:
        self.sheet_id = sheet_id
        self.columns = tuple(columns)
        self.rows: list[Row] = list(rows or [])
        self.attachments: dict[int, list[Attachment]] = dict(attachments or {})
        self.calls: list[tuple[str, Any]] = []
        self._next_id = 9000

    @property
    def mutations(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0] in ("insert_row", "update_rows", "delete_rows")]

    def _renumber(self) -> None:
        self.rows = [replace(r, position=i + 1) for i, r in enumerate(self.rows)]

    def fetch_sheet(self) -> Snapshot:
        self.calls.append(("fetch_sheet", None))
        return Snapshot(sheet_id=self.sheet_id, name="Tracker", columns=self.columns, rows=tuple(self.rows))

    def insert_row(self, request) -> InsertResult:
        self.calls.append(("insert_row", request))
        self._next_id += 1
        row = Row(
            id=self._next_id,
            position=0,
            cells=tuple(Cell(column_id=cid, value=v) for cid, v in request.cells.items()),
        )
        if request.anchor_id is None:
            idx = len(self.rows)
        else:
            idx = next(i for i, r in enumerate(self.rows) if r.id == request.anchor_id)
            if request.position == "after":
                idx += 1
        self.rows.insert(idx, row)
        self._renumber()
        row = self.rows[idx]
        return InsertResult(row_id=row.id, position=row.position, row=row)

    def update_rows(self, requests) -> UpdateResult:
        self.calls.append(("update_rows", list(requests)))
        updated: list[int] = []
        for req in requests:
            for i, r in enumerate(self.rows):
                if r.id != req.row_id:
                    continue
                cells = {c.column_id: c for c in r.cells}
                for cid, value in req.cells.items():
                    cells[cid] = Cell(column_id=cid, value=value)
                self.rows[i] = replace(r, cells=tuple(cells.values()))
                updated.append(r.id)
        failed = [
            {"rowId": req.row_id, "error": {"errorCode": 1006, "message": "Not Found"}}
            for req in requests
            if req.row_id not in updated
        ]
        return UpdateResult(updated=updated, failed=failed)

    def delete_rows(self, row_ids) -> DeleteResult:
        self.calls.append(("delete_rows", list(row_ids)))
        wanted = set(row_ids)
        present = [r.id for r in self.rows if r.id in wanted]
        self.rows = [r for r in self.rows if r.id not in wanted]
        self._renumber()
        return DeleteResult(row_ids=present)

    def fetch_attachments(self, row_id: int) -> list[Attachment]:
        self.calls.append(("fetch_attachments", row_id))
        return list(self.attachments.get(row_id, []))


# ========== Response Assertion Helpers ==========

class ResponseAssertions:
    """Helper class for asserting API response structures."""

    @staticmethod
    def assert_success(response: dict, op: str | None = None) -> dict:
        """Assert response is successful and return data."""
        assert response.get("ok") is True, f"Expected success, got: {response}"
        if op:
            assert response.get("op") == op, f"Expected op={op}, got {response.get('op')}"
        return response.get("data", {})

    @staticmethod
    def assert_error(response: dict, code: str, op: str | None = None) -> dict:
        """Assert response is an error with given code and return the error."""
        assert response.get("ok") is False, f"Expected error, got success: {response}"
        assert response.get("error", {}).get("code") == code, \
            f"Expected error code {code}, got {response.get('error', {}).get('code')}"
        if op:
            assert response.get("op") == op, f"Expected op={op}, got {response.get('op')}"
        return response.get("error", {})


@pytest.fixture
def assertions():
    """Fixture providing response assertion helpers."""
    return ResponseAssertions()


@pytest.fixture(autouse=True)
def clear_preview_cache():
    """Confirm tokens never leak between tests."""
    BaseHandler.get_preview_cache().clear_all()
    yield
    BaseHandler.get_preview_cache().clear_all()


@pytest.fixture
def fake_store():
    """FakeSheetStore holding tasks 1.1 .. 1.11."""
    return FakeSheetStore(tracker_rows())


@pytest.fixture
def make_store():
    """Factory for FakeSheetStore with custom rows/attachments."""
    def _make(rows=None, **kwargs) -> FakeSheetStore:
        return FakeSheetStore(rows, **kwargs)
    return _make


@pytest.fixture
def tracker_snapshot():
    """Snapshot of tasks 1.1 .. 1.11."""
    return Snapshot(sheet_id="4242", name="Tracker", columns=TRACKER_COLUMNS, rows=tuple(tracker_rows()))


@pytest.fixture
def mock_store():
    """
    MagicMock SheetStore for unit tests.
    fetch_sheet returns the 1.1 .. 1.11 tracker; configure further per test.
    """
    mock = MagicMock()
    mock.sheet_id = "4242"
    mock.fetch_sheet.return_value = Snapshot(
        sheet_id="4242", name="Tracker", columns=TRACKER_COLUMNS, rows=tuple(tracker_rows())
    )
    mock.fetch_attachments.return_value = []
    return mock


@pytest.fixture
def sheet_payload():
    """GET /sheets/{id} response body with three tasks (1.9 stored as a number)."""
    return {
        "id": 4242,
        "name": "Tracker",
        "version": 17,
        "columns": [
            {"id": NAME, "title": "Task Name", "type": "TEXT_NUMBER", "primary": True},
            {"id": KEY, "title": "Task ID", "type": "TEXT_NUMBER"},
            {"id": STATUS, "title": "Status", "type": "PICKLIST"},
        ],
        "rows": [
            {
                "id": 1001,
                "rowNumber": 1,
                "cells": [
                    {"columnId": NAME, "value": "Setup", "displayValue": "Setup"},
                    {"columnId": KEY, "value": "1.1", "displayValue": "1.1"},
                    {"columnId": STATUS, "value": "Complete", "displayValue": "Complete"},
                ],
            },
            {
                "id": 1002,
                "rowNumber": 2,
                "cells": [
                    {"columnId": NAME, "value": "Design", "displayValue": "Design"},
                    {"columnId": KEY, "value": 1.9, "displayValue": "1.9"},
                    {"columnId": STATUS},
                ],
            },
            {
                "id": 1003,
                "rowNumber": 3,
                "cells": [
                    {"columnId": NAME, "value": "Review", "displayValue": "Review"},
                    {"columnId": KEY, "value": "1.10", "displayValue": "1.10"},
                    {"columnId": STATUS, "value": "In Progress", "displayValue": "In Progress"},
                ],
            },
        ],
    }


@pytest.fixture
def mock_handler_responses():
    """Predefined handler response templates"""
    return {
        "tasks.list": {
            "ok": True,
            "op": "tasks.list",
            "data": {
                "count": 2,
                "unkeyed_rows": 0,
                "tasks": [
                    {"key": "1.1", "row_id": 1001, "position": 1, "name": "Task 1", "status": "Complete"},
                    {"key": "1.2", "row_id": 1002, "position": 2, "name": "Task 2", "status": "Not Started"},
                ],
            },
        },
        "tasks.upsert": {
            "ok": True,
            "op": "tasks.upsert",
            "data": {"action": "insert", "key": "1.12", "row_id": 9001, "changed": ["Task Name"], "request": None},
        },
        "tasks.cleanup_preview": {
            "ok": True,
            "op": "tasks.cleanup",
            "data": {
                "requires_confirmation": True,
                "preview": {"targets": [{"key": "1.9", "row_id": 1012, "reason": "duplicate"}], "count": 1},
                "confirm_token": "cleanup-token-123",
                "expires_in_seconds": 300,
            },
        },
        "tasks.verify": {
            "ok": True,
            "op": "tasks.verify",
            "data": {"match": True, "expected": 11, "actual": 11, "missing": [], "unexpected": [], "diff": []},
        },
    }
