"""Unit tests for response formatting."""
import json
import pytest
from dbguard.models import (
    ColumnInfo,
    ConstraintInfo,
    IndexInfo,
    TableDescription,
    TableSummary,
)
from dbguard.utils.formatting import (
    ResponseFormat,
    dumps,
    format_query_results,
    format_table_description,
    format_table_list,
)


@pytest.fixture
def description():
    return TableDescription(
        table_name="orders",
        schema_name="public",
        columns=[
            ColumnInfo(column_name="id", data_type="integer", is_nullable=False,
                       ordinal_position=1, is_primary_key=True),
            ColumnInfo(column_name="user_id", data_type="integer",
                       ordinal_position=2, comment="Owner"),
        ],
        indexes=[
            IndexInfo(index_name="orders_user_idx",
                      definition="CREATE INDEX orders_user_idx ON public.orders (user_id)"),
        ],
        constraints=[
            ConstraintInfo(constraint_name="orders_user_fk", constraint_type="FOREIGN KEY",
                           column_name="user_id", references="public.users.id"),
        ],
    )


class TestQueryResultFormatting:
    def test_empty_results_markdown(self):
        result = format_query_results([], fmt=ResponseFormat.MARKDOWN)
        assert "No results" in result

    def test_results_markdown_table(self, sample_rows):
        result = format_query_results(sample_rows)
        assert "2 row(s)" in result
        assert "Alice" in result
        assert "| id |" in result

    def test_results_json(self, sample_rows):
        result = format_query_results(sample_rows, fmt=ResponseFormat.JSON)
        data = json.loads(result)
        assert data["row_count"] == 2
        assert len(data["rows"]) == 2

    def test_truncation_at_50(self):
        rows = [{"id": i} for i in range(100)]
        result = format_query_results(rows)
        assert "...and 50 more rows" in result

    def test_write_result_markdown(self):
        result = format_query_results({"affected_rows": 3, "status": "success"})
        assert "3 row(s) affected" in result

    def test_write_result_json(self):
        result = format_query_results(
            {"affected_rows": 3, "status": "success"}, fmt=ResponseFormat.JSON
        )
        assert json.loads(result) == {"affected_rows": 3, "status": "success"}


class TestTableFormatting:
    def test_table_list_markdown(self):
        tables = [TableSummary(table_name="orders", comment="Customer orders", row_estimate=12)]
        result = format_table_list(tables, "public")
        assert "public.orders" in result
        assert "~12 rows" in result
        assert "Customer orders" in result

    def test_table_list_empty(self):
        assert "No tables" in format_table_list([], "public")

    def test_table_list_json(self):
        tables = [TableSummary(table_name="orders", comment="Customer orders")]
        data = json.loads(format_table_list(tables, "public", fmt=ResponseFormat.JSON))
        assert data["schema"] == "public"
        assert data["tables"] == [{
            "table_name": "orders",
            "table_type": "BASE TABLE",
            "comment": "Customer orders",
            "row_estimate": 0,
        }]

    def test_description_markdown(self, description):
        result = format_table_description(description)
        assert "public.orders" in result
        assert "| 1 | id | integer | NO |" in result
        assert "orders_user_idx" in result
        assert "-> `public.users.id`" in result

    def test_description_json(self, description):
        data = json.loads(format_table_description(description, fmt=ResponseFormat.JSON))
        assert data["columns"][0]["is_primary_key"] is True
        assert data["constraints"][0]["references"] == "public.users.id"


class TestDumps:
    def test_non_json_values_stringified(self):
        from datetime import datetime
        data = json.loads(dumps({"at": datetime(2024, 1, 2, 3, 4, 5)}))
        assert data["at"].startswith("2024-01-02")

    def test_records_nested_in_dicts(self):
        data = json.loads(dumps({"outer": {"tables": [TableSummary(table_name="orders")]}}))
        assert data["outer"]["tables"][0]["table_name"] == "orders"
