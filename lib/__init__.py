"""
Utility libraries for the MCP server.
Pure functions shared by the core, the handlers and the tools.
"""
from .common import log, to_number_or_none, ok, ng
from .task_ids import parse_task_id, task_sort_key, next_task_id
from .sheet_utils import pick_col, norm_header, cell_text
from .types import (
    Response,
    SuccessResponse,
    ErrorResponse,
    ErrorDetail,
    ColumnSpec,
)

__all__ = [
    # Response types
    "Response",
    "SuccessResponse",
    "ErrorResponse",
    "ErrorDetail",
    "ColumnSpec",
    # Functions
    "log",
    "to_number_or_none",
    "ok",
    "ng",
    "parse_task_id",
    "task_sort_key",
    "next_task_id",
    "pick_col",
    "norm_header",
    "cell_text",
]
