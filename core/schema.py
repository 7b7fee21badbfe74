"""
Sheet schema resolution.

Turns the fetched column list into a typed lookup, built once per
operation. Field names are resolved to column ids here so that a missing
column fails loudly before any request is built.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from config import DEFAULT_KEY_COLUMN, TASK_FIELDS
from core.models import Column
from lib.common import log
from lib.errors import SchemaError, UnknownFieldError
from lib.sheet_utils import pick_col
from lib.types import ColumnSpec


@dataclass(frozen=True)
class SheetSchema:
    """Column lookup for one snapshot."""

    columns: tuple[Column, ...]
    title_to_id: dict[str, int]
    key_column: Column
    primary_column_id: int | None = None
    aliases: ColumnSpec = field(default_factory=dict)

    @property
    def key_column_id(self) -> int:
        return self.key_column.id

    def column(self, column_id: int) -> Column | None:
        for c in self.columns:
            if c.id == column_id:
                return c
        return None

    def title_of(self, column_id: int) -> str:
        c = self.column(column_id)
        return c.title if c else str(column_id)

    def find_column_id(self, name: str) -> int | None:
        """Resolve an alias, exact title or normalized title. None if unknown."""
        titles = list(self.title_to_id)
        candidates = self.aliases.get(name)
        if candidates:
            idx = pick_col(titles, candidates)
            if idx >= 0:
                return self.title_to_id[titles[idx]]
        idx = pick_col(titles, [name])
        if idx >= 0:
            return self.title_to_id[titles[idx]]
        return None

    def column_id_for(self, name: str) -> int:
        """Like find_column_id, raising UnknownFieldError when unmapped."""
        column_id = self.find_column_id(name)
        if column_id is None:
            raise UnknownFieldError(name)
        return column_id

    def map_fields(self, fields: dict[str, Any]) -> dict[int, Any]:
        """Map {field name: value} to {column id: value}; all names must resolve."""
        mapped: dict[int, Any] = {}
        names: dict[int, str] = {}
        for name, value in fields.items():
            column_id = self.column_id_for(name)
            if column_id in names:
                log(f"field {name!r} and {names[column_id]!r} both target column {self.title_of(column_id)!r}; last wins")
            names[column_id] = name
            mapped[column_id] = value
        return mapped


def resolve_schema(
    columns: Iterable[Column],
    key_title: str = DEFAULT_KEY_COLUMN,
    aliases: ColumnSpec | None = None,
) -> SheetSchema:
    """
    Build a SheetSchema from a column list.

    Args:
        columns: Columns in sheet order
        key_title: Title of the column holding the row key
        aliases: Logical field name -> candidate titles (defaults to TASK_FIELDS)

    Returns:
        SheetSchema

    Raises:
        SchemaError: If no column matches key_title
    """
    columns = tuple(columns)
    title_to_id: dict[str, int] = {}
    primary_id: int | None = None
    for c in columns:
        if c.title in title_to_id:
            log(f"duplicate column title {c.title!r}; keeping the first")
        else:
            title_to_id[c.title] = c.id
        if c.primary and primary_id is None:
            primary_id = c.id

    titles = list(title_to_id)
    idx = pick_col(titles, [key_title])
    if idx < 0:
        raise SchemaError(
            f"key column {key_title!r} not found (have: {', '.join(titles) or 'no columns'})",
            column=key_title,
        )
    key_id = title_to_id[titles[idx]]
    key_column = next(c for c in columns if c.id == key_id)

    return SheetSchema(
        columns=columns,
        title_to_id=title_to_id,
        key_column=key_column,
        primary_column_id=primary_id,
        aliases=dict(TASK_FIELDS if aliases is None else aliases),
    )

