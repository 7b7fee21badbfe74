"""
Base handler class for sheet-based operations.

Provides common functionality for all handlers:
- Snapshot loading with error handling
- Schema resolution (key column, field aliases)
- Row rendering by column title
- Conversion of core exceptions into error responses
- Response helpers (ok/ng)
"""
from abc import ABC
from typing import Any, ClassVar

from config import DEFAULT_KEY_COLUMN, PREVIEW_TTL_SECONDS, TASK_FIELDS
from core.models import Row, SheetStore, Snapshot
from core.schema import SheetSchema, resolve_schema
from lib.common import ok, ng
from lib.errors import SyncError, empty_sheet, from_exception
from lib.sheet_utils import cell_text
from lib.preview_cache import PreviewCache


class BaseHandler(ABC):
    """
    Abstract base class for all sheet-based handlers.

    Subclasses may override:
    - KEY_COLUMN: Title of the key column
    - FIELD_ALIASES: dict mapping logical field names to candidate titles

    Example:
        class TasksHandler(BaseHandler):
            KEY_COLUMN = "Task ID"
            FIELD_ALIASES = {"status": ["Status"]}
    """

    KEY_COLUMN: ClassVar[str] = DEFAULT_KEY_COLUMN
    FIELD_ALIASES: ClassVar[dict[str, list[str]]] = TASK_FIELDS

    # Shared preview cache (class-level)
    _preview_cache: ClassVar[PreviewCache | None] = None

    def __init__(self, store: SheetStore, key_title: str | None = None) -> None:
        """
        Initialize handler with a store and optional key column override.

        Args:
            store: SheetStore implementation (SmartsheetClient in production)
            key_title: Override the key column title
        """
        self.store = store
        self.key_title = key_title or self.KEY_COLUMN

        # Populated by load_snapshot
        self._snapshot: Snapshot | None = None
        self._schema: SheetSchema | None = None

    # === Properties ===

    @property
    def snapshot(self) -> Snapshot:
        """Snapshot fetched by the current operation."""
        if self._snapshot is None:
            raise RuntimeError("load_snapshot() has not been called")
        return self._snapshot

    @property
    def schema(self) -> SheetSchema:
        """Schema resolved from the current snapshot."""
        if self._schema is None:
            raise RuntimeError("load_snapshot() has not been called")
        return self._schema

    @classmethod
    def get_preview_cache(cls) -> PreviewCache:
        """Get shared preview cache instance."""
        if BaseHandler._preview_cache is None:
            BaseHandler._preview_cache = PreviewCache(ttl_seconds=PREVIEW_TTL_SECONDS)
        return BaseHandler._preview_cache

    # === Snapshot Loading ===

    def load_snapshot(self, op_name: str, require_rows: bool = False) -> dict | None:
        """
        Fetch a fresh snapshot and resolve its schema.

        Args:
            op_name: Operation name for error messages
            require_rows: Treat a sheet without rows as an EMPTY error

        Returns:
            Error dict if failed, None on success.
        """
        try:
            self._snapshot = self.store.fetch_sheet()
            self._schema = resolve_schema(self._snapshot.columns, self.key_title, self.FIELD_ALIASES)
        except SyncError as e:
            return self._fail(op_name, e)

        if require_rows and not self._snapshot.rows:
            return empty_sheet(op_name)
        return None

    # === Row Rendering ===

    def row_key(self, row: Row) -> Any:
        """Key value of a row in the current snapshot."""
        return row.value(self.schema.key_column_id)

    def row_to_dict(self, row: Row, titles: list[str] | None = None) -> dict[str, Any]:
        """
        Render a row as {column title: display text}.

        Args:
            row: Row from the current snapshot
            titles: Restrict to these column titles (default: all)
        """
        wanted = set(titles) if titles else None
        out: dict[str, Any] = {}
        for column in self.schema.columns:
            if wanted is not None and column.title not in wanted:
                continue
            cell = row.cell(column.id)
            out[column.title] = cell_text(cell.value, cell.display_value) if cell else ""
        return out

    # === Response Helpers ===

    def _ok(self, op: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return success response."""
        return ok(op, data or {})

    def _error(
        self,
        op: str,
        code: str,
        message: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return error response."""
        return ng(op, code, message, extra)

    def _fail(self, op: str, exc: SyncError) -> dict[str, Any]:
        """Return error response for a core exception, keeping its context."""
        return from_exception(op, exc)
