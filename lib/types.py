"""
Type definitions for the task sync server.
Response envelopes and the raw JSON shapes exchanged with Smartsheet.
"""
from typing import TypedDict, Any


class ErrorDetail(TypedDict):
    """Error detail structure."""
    code: str
    message: str


class SuccessResponse(TypedDict):
    """Successful API response."""
    ok: bool
    op: str
    data: dict[str, Any]


class ErrorResponse(TypedDict):
    """Error API response."""
    ok: bool
    op: str
    error: ErrorDetail


# Union type for all API responses
Response = SuccessResponse | ErrorResponse


class CellPayload(TypedDict, total=False):
    """Cell as sent to / received from the rows endpoints."""
    columnId: int
    value: Any
    displayValue: str
    formula: str


class RowPayload(TypedDict, total=False):
    """Row as received from GET /sheets/{id}."""
    id: int
    rowNumber: int
    cells: list[CellPayload]


# Caller field name -> value to write
FieldMap = dict[str, Any]

# Logical field name -> candidate column titles
ColumnSpec = dict[str, list[str]]
