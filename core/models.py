"""
Sheet data model.

Dataclasses for one fetched snapshot (columns, rows, cells), the mutation
requests built from it, and the results the store hands back. Also the
SheetStore protocol: the narrow set of store calls the core depends on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from lib.types import CellPayload, RowPayload

InsertPosition = Literal["before", "after", "bottom"]


@dataclass(frozen=True)
class Column:
    """Sheet column. `title` is the human handle, `id` the one mutations use."""
    id: int
    title: str
    type: str = "TEXT_NUMBER"
    primary: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Column:
        return cls(
            id=data["id"],
            title=str(data.get("title", "")),
            type=str(data.get("type", "TEXT_NUMBER")),
            primary=bool(data.get("primary", False)),
        )


@dataclass(frozen=True)
class Cell:
    """One cell. `value is None` means empty; 0, "" and False are values."""
    column_id: int
    value: Any = None
    display_value: str | None = None
    formula: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.value is None

    @classmethod
    def from_api(cls, data: CellPayload) -> Cell:
        return cls(
            column_id=data["columnId"],
            value=data.get("value"),
            display_value=data.get("displayValue"),
            formula=data.get("formula"),
        )


@dataclass(frozen=True)
class Row:
    """Sheet row. `id` is stable; `position` shifts as siblings come and go."""
    id: int
    position: int
    cells: tuple[Cell, ...] = ()

    def cell(self, column_id: int) -> Cell | None:
        for c in self.cells:
            if c.column_id == column_id:
                return c
        return None

    def value(self, column_id: int) -> Any:
        c = self.cell(column_id)
        return c.value if c else None

    @classmethod
    def from_api(cls, data: RowPayload) -> Row:
        return cls(
            id=data["id"],
            position=int(data.get("rowNumber", 0)),
            cells=tuple(Cell.from_api(c) for c in data.get("cells", [])),
        )


@dataclass(frozen=True)
class Attachment:
    """File attached to a row."""
    id: int
    name: str
    attachment_type: str = "FILE"
    parent_id: int | None = None
    size_kb: float | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            id=data["id"],
            name=str(data.get("name", "")),
            attachment_type=str(data.get("attachmentType", "FILE")),
            parent_id=data.get("parentId"),
            size_kb=data.get("sizeInKb"),
        )


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time view of a sheet. Never cached between operations."""
    sheet_id: Any
    name: str
    columns: tuple[Column, ...]
    rows: tuple[Row, ...]
    version: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Snapshot:
        return cls(
            sheet_id=data.get("id"),
            name=str(data.get("name", "")),
            columns=tuple(Column.from_api(c) for c in data.get("columns", [])),
            rows=tuple(Row.from_api(r) for r in data.get("rows", [])),
            version=data.get("version"),
        )


def _cells_to_api(cells: dict[int, Any]) -> list[dict[str, Any]]:
    return [{"columnId": column_id, "value": value} for column_id, value in cells.items()]


@dataclass
class InsertRequest:
    """New row, placed relative to a sibling or at the bottom of the sheet."""
    cells: dict[int, Any]
    anchor_id: int | None = None
    position: InsertPosition = "bottom"

    def to_api(self) -> dict[str, Any]:
        body: dict[str, Any] = {"cells": _cells_to_api(self.cells)}
        if self.position == "bottom" or self.anchor_id is None:
            body["toBottom"] = True
        else:
            body["siblingId"] = self.anchor_id
            if self.position == "before":
                body["above"] = True
        return body

    def describe(self) -> dict[str, Any]:
        return {
            "type": "insert",
            "anchor_id": self.anchor_id,
            "position": self.position,
            "cells": self.to_api()["cells"],
        }


@dataclass
class UpdateRequest:
    """Partial update: only the listed cells are written."""
    row_id: int
    cells: dict[int, Any]

    def to_api(self) -> dict[str, Any]:
        return {"id": self.row_id, "cells": _cells_to_api(self.cells)}

    def describe(self) -> dict[str, Any]:
        return {"type": "update", **self.to_api()}


@dataclass
class InsertResult:
    row_id: int
    position: int | None = None
    row: Row | None = None


@dataclass
class UpdateResult:
    """Rows the store accepted plus per-row failures (partial success)."""
    updated: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class DeleteResult:
    row_ids: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.row_ids)


class SheetStore(Protocol):
    """Capabilities the sync core needs from the tabular store."""

    def fetch_sheet(self) -> Snapshot:
        ...

    def insert_row(self, request: InsertRequest) -> InsertResult:
        ...

    def update_rows(self, requests: list[UpdateRequest]) -> UpdateResult:
        ...

    def delete_rows(self, row_ids: list[int]) -> DeleteResult:
        ...

    def fetch_attachments(self, row_id: int) -> list[Attachment]:
        ...
