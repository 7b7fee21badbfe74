"""
Tests for task ID parsing and ordering.
"""
import pytest

from lib.task_ids import (
    between,
    in_phase,
    next_task_id,
    parse_task_id,
    phase_of,
    task_sort_key,
)


class TestParseTaskId:
    """Tests for parse_task_id"""

    @pytest.mark.parametrize("raw,expected", [
        ("1.12", (1, 12)),
        ("1.9", (1, 9)),
        (" 2.3 ", (2, 3)),
        (1.9, (1, 9)),
        (2, (2, 0)),
        (2.0, (2, 0)),
    ])
    def test_valid(self, raw, expected):
        assert parse_task_id(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, True, "1.2.3", "A.1", "1."])
    def test_invalid(self, raw):
        assert parse_task_id(raw) is None


class TestOrdering:
    """Task order compares integer parts, not floats"""

    def test_ten_sorts_after_nine(self):
        keys = ["1.10", "1.9", "1.11", "1.1", "2.1"]
        assert sorted(keys, key=task_sort_key) == ["1.1", "1.9", "1.10", "1.11", "2.1"]

    def test_unparseable_sorts_last(self):
        keys = ["misc", "1.2", "1.1"]
        assert sorted(keys, key=task_sort_key) == ["1.1", "1.2", "misc"]

    def test_between_is_inclusive(self):
        assert between("1.9", "1.9", "1.11")
        assert between("1.10", "1.9", "1.11")
        assert between("1.11", "1.9", "1.11")
        assert not between("1.2", "1.9", "1.11")
        assert not between("1.12", "1.9", "1.11")

    def test_between_with_bad_bounds(self):
        assert not between("1.5", "x", "1.9")


class TestPhase:
    """Tests for phase_of / in_phase"""

    def test_phase_of(self):
        assert phase_of("3.14") == 3
        assert phase_of("notes") is None

    def test_in_phase(self):
        assert in_phase("1.12", 1)
        assert not in_phase("2.1", 1)
        assert in_phase(2.4, "2")


class TestNextTaskId:
    """Tests for next_task_id"""

    def test_after_highest_sequence(self):
        existing = ["1.1", "1.9", "1.10", "1.11", "2.1", None, ""]
        assert next_task_id(1, existing) == "1.12"

    def test_empty_phase(self):
        assert next_task_id(3, ["1.1", "2.2"]) == "3.1"

    def test_float_ids(self):
        assert next_task_id(2, [2.1, 2.2]) == "2.3"
