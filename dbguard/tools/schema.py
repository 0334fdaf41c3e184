"""Schema and metadata discovery tools."""
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from dbguard.introspection import CatalogInspector
from dbguard.utils.errors import handle_error
from dbguard.utils.formatting import (
    ResponseFormat,
    dumps,
    format_query_results,
    format_table_description,
    format_table_list,
)

_READ_ONLY_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": False,
}


class ListSchemasInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class ListTablesInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    schema_name: Optional[str] = Field(
        default=None, description="Schema to list tables from (defaults to the server's default schema)"
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class TableInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    table_name: str = Field(..., description="Table name", min_length=1, max_length=128)
    schema_name: Optional[str] = Field(
        default=None, description="Schema of the table (defaults to the server's default schema)"
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class SampleDataInput(TableInput):
    limit: int = Field(default=5, description="Number of rows to return (1-100)", ge=1, le=100)


class FindTablesInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    keyword: str = Field(..., description="Text to search for in table names", min_length=1)
    exact: bool = Field(
        default=False, description="Match the table name exactly instead of by substring"
    )
    schema_name: Optional[str] = Field(default=None, description="Schema to search")


def register_schema_tools(mcp: FastMCP, inspector: CatalogInspector):

    @mcp.tool(
        name="dbguard_list_schemas",
        annotations={"title": "List Database Schemas", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_list_schemas(params: ListSchemasInput) -> str:
        """List the schemas this server may access.
        Filters out internal PostgreSQL schemas (pg_catalog, information_schema, pg_toast)."""
        try:
            schemas = await inspector.list_schemas()
            if params.response_format == ResponseFormat.JSON:
                return dumps(schemas)
            lines = ["## Schemas\n"]
            for s in schemas:
                lines.append(f"- **{s.schema_name}** (owner: {s.schema_owner or 'N/A'})")
            return "\n".join(lines)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_list_tables",
        annotations={"title": "List Tables in Schema", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_list_tables(params: ListTablesInput) -> str:
        """List tables and views in a schema with type, comment and row estimate."""
        try:
            tables = await inspector.list_tables(params.schema_name)
            schema = params.schema_name or inspector.default_schema
            return format_table_list(tables, schema, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_describe_table",
        annotations={"title": "Describe Table Schema", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_describe_table(params: TableInput) -> str:
        """Get the full structure of a table: columns (type, nullability, default,
        primary key, comment), indexes and constraints including foreign keys."""
        try:
            description = await inspector.describe_table(
                params.table_name, params.schema_name
            )
            return format_table_description(description, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_table_stats",
        annotations={"title": "Table Statistics", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_table_stats(params: TableInput) -> str:
        """Row estimate, live rows, data/index/total size in bytes, last analyze time."""
        try:
            stats = await inspector.table_stats(params.table_name, params.schema_name)
            return dumps(stats)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_sample_data",
        annotations={"title": "Sample Table Rows", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_sample_data(params: SampleDataInput) -> str:
        """Return the first rows of a table. Table names may contain only
        letters, digits and underscores."""
        try:
            rows = await inspector.sample_data(
                params.table_name, params.limit, params.schema_name
            )
            return format_query_results(rows, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_find_tables",
        annotations={"title": "Find Tables by Name", **_READ_ONLY_ANNOTATIONS},
    )
    async def dbguard_find_tables(params: FindTablesInput) -> str:
        """Search tables by name, by substring (default) or exact match."""
        try:
            matches = await inspector.find_tables(
                params.keyword, exact=params.exact, schema=params.schema_name
            )
            return dumps(matches)
        except Exception as e:
            return handle_error(e)
