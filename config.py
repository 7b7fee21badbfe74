"""
Configuration constants for the task sync server.
Centralizes the Smartsheet endpoint, column titles and pacing values.
Remote-assigned ids (sheet rows and columns) are never stored here;
they are resolved from each fetched snapshot.
"""
from typing import Final

# Smartsheet REST API
SMARTSHEET_API_BASE: Final[str] = "https://api.smartsheet.com/2.0"
REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0

# Column holding the row key (dotted task number)
DEFAULT_KEY_COLUMN: Final[str] = "Task ID"

# Logical field name -> candidate column titles in the project tracker.
# Callers may also address a column by its exact title.
TASK_FIELDS: Final[dict[str, list[str]]] = {
    "key": ["Task ID"],
    "name": ["Task Name", "Name"],
    "phase": ["SDLC Phase", "Phase"],
    "category": ["Category"],
    "priority": ["Priority"],
    "status": ["Status"],
    "progress": ["% Complete", "Progress"],
    "assignee": ["Assigned To", "Assignee"],
    "start_date": ["Start Date"],
    "end_date": ["End Date"],
    "duration": ["Duration"],
    "predecessor": ["Predecessor", "Predecessors"],
    "description": ["Description"],
    "acceptance_criteria": ["Acceptance Criteria"],
    "criteria_met": ["Criteria Met"],
    "deliverable": ["Deliverable"],
    "submitted": ["Submitted"],
    "notes": ["Comments / Notes", "Notes"],
    "risk": ["Risk Level"],
}

# Fields shown in task listings
LIST_FIELDS: Final[tuple[str, ...]] = ("name", "status", "progress", "priority")

# Status written by tasks.complete; progress 1 renders as 100%
COMPLETE_STATUS: Final[str] = "Complete"
COMPLETE_PROGRESS: Final[int] = 1

# Attachment verification pacing (per-row lookups)
ATTACHMENT_REQUEST_DELAY_SECONDS: Final[float] = 0.2
ATTACHMENT_PAGE_SIZE: Final[int] = 100

# Two-phase cleanup token lifetime
PREVIEW_TTL_SECONDS: Final[int] = 300

# Smartsheet error code for "Not Found"
NOT_FOUND_ERROR_CODE: Final[int] = 1006
