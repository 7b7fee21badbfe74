"""
Tests for the sheet schema resolver.
"""
import pytest

from conftest import KEY, NAME, PROGRESS, STATUS, TRACKER_COLUMNS
from core.models import Column
from core.schema import resolve_schema
from lib.errors import SchemaError, UnknownFieldError


class TestResolveSchema:
    """Tests for resolve_schema"""

    def test_title_to_id(self):
        schema = resolve_schema(TRACKER_COLUMNS)
        assert schema.title_to_id["Task Name"] == NAME
        assert schema.title_to_id["Status"] == STATUS
        assert schema.key_column_id == KEY
        assert schema.primary_column_id == NAME

    def test_custom_key_title(self):
        schema = resolve_schema(TRACKER_COLUMNS, key_title="Task Name")
        assert schema.key_column_id == NAME

    def test_key_title_matched_after_normalizing(self):
        columns = [Column(id=1, title="task id"), Column(id=2, title="Status")]
        assert resolve_schema(columns).key_column_id == 1

    def test_missing_key_column_raises(self):
        columns = [Column(id=1, title="Task Name", primary=True)]
        with pytest.raises(SchemaError) as exc:
            resolve_schema(columns)
        assert exc.value.column == "Task ID"
        assert "Task Name" in str(exc.value)

    def test_no_primary_column(self):
        columns = [Column(id=1, title="Task ID")]
        assert resolve_schema(columns).primary_column_id is None

    def test_duplicate_titles_first_wins(self):
        columns = [
            Column(id=1, title="Task ID"),
            Column(id=2, title="Status"),
            Column(id=3, title="Status"),
        ]
        schema = resolve_schema(columns)
        assert schema.title_to_id["Status"] == 2
        assert len(schema.columns) == 3


class TestFieldMapping:
    """Tests for SheetSchema field lookup"""

    @pytest.fixture
    def schema(self):
        return resolve_schema(TRACKER_COLUMNS)

    def test_alias(self, schema):
        assert schema.find_column_id("name") == NAME
        assert schema.find_column_id("progress") == PROGRESS

    def test_exact_title(self, schema):
        assert schema.find_column_id("% Complete") == PROGRESS

    def test_normalized_title(self, schema):
        assert schema.find_column_id("status ") == STATUS

    def test_alias_without_column_falls_through(self, schema):
        # "deliverable" has aliases but no such column in this sheet
        assert schema.find_column_id("deliverable") is None

    def test_map_fields(self, schema):
        mapped = schema.map_fields({"name": "X", "Status": "Complete", "progress": 1})
        assert mapped == {NAME: "X", STATUS: "Complete", PROGRESS: 1}

    def test_unknown_field_raises(self, schema):
        with pytest.raises(UnknownFieldError) as exc:
            schema.map_fields({"name": "X", "owner_email": "a@b.c"})
        assert exc.value.field == "owner_email"

    def test_title_of(self, schema):
        assert schema.title_of(STATUS) == "Status"
        assert schema.title_of(999) == "999"
