"""
Standardized error handling for the task sync server.

Two layers:
- Exception taxonomy raised by the core (schema, locator, upsert,
  reconcile, verify) and by the Smartsheet transport.
- Response helpers that turn a failure into the {ok: false, op, error}
  envelope returned by handlers and MCP tools.
"""
from enum import Enum
from typing import Any

from lib.common import ng


class ErrorCode(str, Enum):
    """Standardized error codes used across the server."""
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    EMPTY = "EMPTY"
    CONFIRM_EXPIRED = "CONFIRM_EXPIRED"
    CONFIRM_MISMATCH = "CONFIRM_MISMATCH"
    CONFIG_ERROR = "CONFIG_ERROR"
    SCHEMA_ERROR = "SCHEMA_ERROR"
    ANCHOR_NOT_FOUND = "ANCHOR_NOT_FOUND"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    REMOTE_ERROR = "REMOTE_ERROR"
    REMOTE_REJECTED = "REMOTE_REJECTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# === Exceptions ===

class SyncError(Exception):
    """Base class for every failure the sync core reports."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def context(self) -> dict[str, Any]:
        """Extra fields copied into the error envelope."""
        return {}


class ConfigurationError(SyncError):
    """API token or sheet id missing. Raised before any request is made."""

    code = ErrorCode.CONFIG_ERROR


class SchemaError(SyncError):
    """A required column is absent from the fetched sheet."""

    code = ErrorCode.SCHEMA_ERROR

    def __init__(self, message: str, column: str | None = None) -> None:
        super().__init__(message)
        self.column = column

    def context(self) -> dict[str, Any]:
        return {"column": self.column} if self.column else {}


class AnchorNotFoundError(SyncError):
    """The sibling row named by a placement hint does not exist."""

    code = ErrorCode.ANCHOR_NOT_FOUND

    def __init__(self, anchor_key: Any) -> None:
        super().__init__(f"anchor row not found for key {anchor_key!r}")
        self.anchor_key = anchor_key

    def context(self) -> dict[str, Any]:
        return {"anchor_key": self.anchor_key}


class UnknownFieldError(SyncError):
    """A field name has no column mapping."""

    code = ErrorCode.UNKNOWN_FIELD

    def __init__(self, field: str) -> None:
        super().__init__(f"no column for field {field!r}")
        self.field = field

    def context(self) -> dict[str, Any]:
        return {"field": self.field}


class DuplicateKeyError(SyncError):
    """More than one row carries the same key; nothing is written."""

    code = ErrorCode.DUPLICATE_KEY

    def __init__(self, key: Any, row_ids: list[int]) -> None:
        super().__init__(f"key {key!r} matches {len(row_ids)} rows")
        self.key = key
        self.row_ids = list(row_ids)

    def context(self) -> dict[str, Any]:
        return {"key": self.key, "row_ids": self.row_ids}


class RemoteError(SyncError):
    """Non-2xx response (or transport failure) from the store."""

    code = ErrorCode.REMOTE_ERROR

    def __init__(
        self,
        message: str,
        status: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload

    def context(self) -> dict[str, Any]:
        return {"status": self.status, "payload": self.payload}


class RemoteRejectedError(RemoteError):
    """The store refused a mutation. Payload is kept verbatim."""

    code = ErrorCode.REMOTE_REJECTED


# === Response helpers ===

def bad_request(op: str, message: str) -> dict[str, Any]:
    """Create a BAD_REQUEST error response."""
    return ng(op, ErrorCode.BAD_REQUEST, message)


def not_found(op: str, message: str) -> dict[str, Any]:
    """Create a NOT_FOUND error response."""
    return ng(op, ErrorCode.NOT_FOUND, message)


def empty_sheet(op: str, message: str = "sheet has no rows") -> dict[str, Any]:
    """Create an EMPTY error response for empty sheets."""
    return ng(op, ErrorCode.EMPTY, message)


def from_exception(op: str, exc: SyncError) -> dict[str, Any]:
    """Convert a SyncError into an error response carrying its context."""
    return ng(op, exc.code, f"{op} failed: {exc}", exc.context())
