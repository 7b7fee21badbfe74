"""
Sheet Tasks MCP Server

Connects Claude to a Smartsheet project tracker: keyed task upserts,
cleanup of stale/duplicate rows, and post-change verification.
"""
import asyncio
import os
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from env_loader import get_key_column, get_port
from handlers.tasks import TasksHandler
from lib.common import log, to_number_or_none
from lib.errors import ConfigurationError, bad_request, from_exception
from lib.input_parser import (
    as_list as _as_list,
    coerce_bool as _coerce_bool,
    coerce_fields as _coerce_fields,
    coerce_int as _coerce_int,
    coerce_key as _coerce_key,
    coerce_str as _coerce_str,
)
from smartsheet_client import get_smartsheet_client

_extra_hosts = [h.strip() for h in os.getenv("MCP_ALLOWED_HOSTS", "").split(",") if h.strip()]
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=["localhost:8080", "127.0.0.1:8080", *_extra_hosts],
)

mcp = FastMCP("sheet-tasks", transport_security=transport_security)


def _open_handler(op: str) -> tuple[TasksHandler | None, dict | None]:
    """Build a handler over the process client; config problems become CONFIG_ERROR."""
    try:
        return TasksHandler(get_smartsheet_client(), key_title=get_key_column()), None
    except ConfigurationError as e:
        log(f"{op}: {e}")
        return None, from_exception(op, e)


def _coerce_progress(fields: dict[str, Any]) -> dict[str, Any]:
    """Accept "100%" / "0.5" strings for progress."""
    if isinstance(fields.get("progress"), str):
        number = to_number_or_none(fields["progress"])
        if number is not None:
            fields = {**fields, "progress": number}
    return fields


# ===== Read Tools =====

@mcp.tool()
async def sheet_columns() -> dict:
    """Lists the tracker sheet's columns.

    Returns (example):
    { ok:true, op:"sheet.columns", data:{ sheet, columns:[{id,title,type,primary,key}], count } }
    """
    handler, error = _open_handler("sheet.columns")
    if error:
        return error
    return handler.columns()


@mcp.tool()
async def tasks_list(phase: Any = None, limit: int | None = None) -> dict:
    """Lists tasks in task-ID order (1.9 before 1.10).

    Args:
    - phase: only tasks of this phase (e.g. 1)
    - limit: maximum number of results

    Returns (example):
    { ok:true, op:"tasks.list", data:{ tasks:[{key,row_id,position,name,status,progress,priority}], count, unkeyed_rows } }
    """
    handler, error = _open_handler("tasks.list")
    if error:
        return error
    return handler.list(phase=_coerce_int(phase, ("phase",)), limit=_coerce_int(limit))


@mcp.tool()
async def tasks_get(key: Any) -> dict:
    """Gets one task by task ID. Duplicates are returned too (duplicate: true).

    Usage:
    - tasks_get("1.9")
    - tasks_get({"task_id": "1.9"})
    """
    k = _coerce_key(key)
    if k is None:
        return bad_request("tasks.get", "key is required")

    handler, error = _open_handler("tasks.get")
    if error:
        return error
    return handler.get(k)


@mcp.tool()
async def tasks_next_id(phase: Any) -> dict:
    """Returns the next free task ID in a phase (e.g. 1.12 after 1.11)."""
    p = _coerce_int(phase, ("phase",))
    if p is None:
        return bad_request("tasks.next_id", "phase is required")

    handler, error = _open_handler("tasks.next_id")
    if error:
        return error
    return handler.next_id(p)


# ===== Write Tools =====

@mcp.tool()
async def tasks_upsert(
    key: Any,
    fields: Any = None,
    after: Any = None,
    before: Any = None,
    dry_run: bool | None = None,
    only_changed: bool | None = None,
) -> dict:
    """Creates or updates the task with this ID.

    Only the supplied fields are written; other columns are never cleared.
    Fails with DUPLICATE_KEY when several rows carry the ID.

    Args:
    - key: task ID (required), e.g. "1.12"
    - fields: {field or column title: value}, e.g. {"name":"X","status":"Complete","progress":1}
    - after / before: task ID of the sibling a new row is placed next to
    - dry_run: return the planned request without sending it
    - only_changed: skip fields that already hold the value

    Returns (example):
    { ok:true, op:"tasks.upsert", data:{ action:"insert", key:"1.12", row_id, changed:[...], request:{...} } }
    """
    k = _coerce_key(key)
    if k is None:
        return bad_request("tasks.upsert", "key is required")
    f = _coerce_fields(fields)
    if f is None:
        return bad_request("tasks.upsert", "fields (dict) is required")

    handler, error = _open_handler("tasks.upsert")
    if error:
        return error
    return handler.upsert(
        k,
        _coerce_progress(f),
        after=_coerce_key(after),
        before=_coerce_key(before),
        dry_run=bool(_coerce_bool(dry_run)),
        only_changed=bool(_coerce_bool(only_changed)),
    )


@mcp.tool()
async def tasks_complete(key: Any) -> dict:
    """Marks an existing task Complete at 100%. Never creates a row."""
    k = _coerce_key(key)
    if k is None:
        return bad_request("tasks.complete", "key is required")

    handler, error = _open_handler("tasks.complete")
    if error:
        return error
    return handler.complete(k)


@mcp.tool()
async def tasks_cleanup(
    from_position: Any = None,
    empty_keys: bool | None = None,
    keys: Any = None,
    dedupe: bool | None = None,
    keep: str | None = None,
    confirm_token: str | None = None,
) -> dict:
    """Deletes stale and duplicate rows (two-phase).

    Step 1 (no confirm_token): returns the rows that would be deleted and a confirm_token.
    Step 2: call again with confirm_token to delete exactly those rows.

    Args:
    - from_position: rows at this row number or below are stale
    - empty_keys: rows without a task ID are stale
    - keys: task IDs to delete (list or "1.3,1.4")
    - dedupe: keep one row per duplicated task ID (default true)
    - keep: which duplicate stays: first | last | lowest_position | highest_position
    """
    handler, error = _open_handler("tasks.cleanup")
    if error:
        return error

    dd = _coerce_bool(dedupe)
    return handler.cleanup(
        from_position=_coerce_int(from_position),
        empty_keys=bool(_coerce_bool(empty_keys)),
        keys=_as_list(keys) or None,
        dedupe=True if dd is None else dd,
        keep=_coerce_str(keep) or "first",
        confirm_token=confirm_token,
    )


# ===== Verification Tools =====

@mcp.tool()
async def tasks_verify(
    expected_keys: Any = None,
    expected_count: int | None = None,
    phase: Any = None,
    low: Any = None,
    high: Any = None,
) -> dict:
    """Checks that the expected task rows exist.

    Args:
    - expected_keys: task IDs that must exist
    - expected_count: expected number of rows (within phase / low..high when given)
    - phase / low+high: restrict the check

    Returns (example):
    { ok:true, data:{ match:false, expected:12, actual:11, missing:["1.12"], unexpected:[], duplicates:[], diff:[...] } }
    """
    handler, error = _open_handler("tasks.verify")
    if error:
        return error
    return handler.verify(
        expected_keys=_as_list(expected_keys) if expected_keys is not None else None,
        expected_count=_coerce_int(expected_count),
        phase=_coerce_int(phase),
        low=_coerce_key(low),
        high=_coerce_key(high),
    )


@mcp.tool()
async def tasks_verify_attachments(
    phase: Any = None,
    low: Any = None,
    high: Any = None,
    keys: Any = None,
    expected_per_row: int | None = None,
    expected_total: int | None = None,
    name_suffix: str | None = None,
) -> dict:
    """Counts attachments on the selected task rows and flags rows missing one.

    Args:
    - phase / low+high / keys: which rows (one is required)
    - expected_per_row: minimum attachments per row (default 1)
    - expected_total: expected overall count (default per-row x rows)
    - name_suffix: only count files with this ending, e.g. ".docx"
    """
    handler, error = _open_handler("tasks.verify_attachments")
    if error:
        return error
    per_row = _coerce_int(expected_per_row)
    # Lookups are paced with a blocking sleep; keep them off the event loop.
    return await asyncio.to_thread(
        handler.verify_attachments,
        phase=_coerce_int(phase),
        low=_coerce_key(low),
        high=_coerce_key(high),
        keys=_as_list(keys) or None,
        expected_per_row=1 if per_row is None else per_row,
        expected_total=_coerce_int(expected_total),
        name_suffix=_coerce_str(name_suffix),
    )


@mcp.tool()
async def tools_help() -> dict:
    """Lists the tools this server exposes and how to call them."""
    tools = [
        {"name": "sheet_columns", "desc": "Tracker sheet columns", "args": {}},
        {"name": "tasks_list", "desc": "Tasks in ID order", "args": {"phase": "int", "limit": "int"}},
        {"name": "tasks_get", "desc": "One task by ID", "args": {"key": "string"}},
        {"name": "tasks_next_id", "desc": "Next free ID in a phase", "args": {"phase": "int"}},
        {"name": "tasks_upsert", "desc": "Create or update a task", "args": {"key": "string", "fields": "dict", "after": "string", "before": "string", "dry_run": "bool", "only_changed": "bool"}},
        {"name": "tasks_complete", "desc": "Mark a task complete", "args": {"key": "string"}},
        {"name": "tasks_cleanup", "desc": "Delete stale/duplicate rows (two-phase)", "args": {"from_position": "int", "empty_keys": "bool", "keys": "string[]", "dedupe": "bool", "keep": "string", "confirm_token": "string"}},
        {"name": "tasks_verify", "desc": "Check expected rows exist", "args": {"expected_keys": "string[]", "expected_count": "int", "phase": "int", "low": "string", "high": "string"}},
        {"name": "tasks_verify_attachments", "desc": "Check attachments per row", "args": {"phase": "int", "keys": "string[]", "expected_per_row": "int", "name_suffix": "string"}},
    ]
    return {"ok": True, "op": "tools.help", "data": {"tools": tools}}


# ===== Server Entry Point =====

if __name__ == "__main__":
    import uvicorn
    from contextlib import asynccontextmanager
    from starlette.applications import Starlette
    from starlette.routing import Route
    from starlette.responses import JSONResponse

    async def healthz(request):
        return JSONResponse({"status": "ok"})

    async def root(request):
        return JSONResponse(
            {"error": "Use /mcp for the MCP endpoint or /healthz for health check"},
            status_code=406,
        )

    mcp_app = mcp.streamable_http_app()

    @asynccontextmanager
    async def lifespan(app):
        async with mcp.session_manager.run():
            yield

    starlette_app = Starlette(
        routes=[
            Route("/", root),
            Route("/healthz", healthz),
        ],
        lifespan=lifespan,
    )

    async def combined_app(scope, receive, send):
        path = scope.get("path", "/")
        if path.startswith("/mcp"):
            await mcp_app(scope, receive, send)
        else:
            await starlette_app(scope, receive, send)

    port = get_port()
    log(f"Starting server on port {port}")
    uvicorn.run(combined_app, host="0.0.0.0", port=port, lifespan="on")
