"""
Task ID rules.
Task IDs are dotted "<phase>.<sequence>" numbers such as 1.9 or 1.12.
The store may hand them back as floats, so ordering is done on the
parsed integer parts, never on the float value (1.10 sorts after 1.9).
"""
import re
from typing import Any

TASK_ID_PATTERN = re.compile(r"^(\d+)(?:\.(\d+))?$")


def _as_text(task_id: Any) -> str:
    if isinstance(task_id, bool) or task_id is None:
        return ""
    if isinstance(task_id, float):
        return str(int(task_id)) if task_id.is_integer() else repr(task_id)
    return str(task_id).strip()


def parse_task_id(task_id: Any) -> tuple[int, int] | None:
    """
    Parse a task ID into (phase, sequence).
    "1.12" -> (1, 12), 2 -> (2, 0). Returns None for anything else.
    """
    match = TASK_ID_PATTERN.match(_as_text(task_id))
    if not match:
        return None
    phase = int(match.group(1))
    seq = int(match.group(2)) if match.group(2) is not None else 0
    return phase, seq


def task_sort_key(task_id: Any) -> tuple[int, int, int, str]:
    """Sort key placing parseable IDs in task order and the rest last."""
    parsed = parse_task_id(task_id)
    if parsed is None:
        return (1, 0, 0, _as_text(task_id))
    return (0, parsed[0], parsed[1], "")


def phase_of(task_id: Any) -> int | None:
    """Return the phase number of a task ID, or None."""
    parsed = parse_task_id(task_id)
    return parsed[0] if parsed else None


def in_phase(task_id: Any, phase: int) -> bool:
    """Check whether a task ID belongs to the given phase."""
    return phase_of(task_id) == int(phase)


def between(task_id: Any, low: Any, high: Any) -> bool:
    """Inclusive range check in task order (1.9 < 1.10 < 1.11)."""
    parsed = parse_task_id(task_id)
    lo = parse_task_id(low)
    hi = parse_task_id(high)
    if parsed is None or lo is None or hi is None:
        return False
    return lo <= parsed <= hi


def next_task_id(phase: int, existing_ids: list[Any]) -> str:
    """
    Generate the next task ID for a phase.
    Format: <phase>.<max sequence + 1>; "<phase>.1" when the phase is empty.
    """
    max_seq = 0
    for task_id in existing_ids:
        parsed = parse_task_id(task_id)
        if parsed and parsed[0] == int(phase):
            max_seq = max(max_seq, parsed[1])
    return f"{int(phase)}.{max_seq + 1}"
