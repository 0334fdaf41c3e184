"""SQL query execution tools with security-mode enforcement."""
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from dbguard.executor import QueryExecutor
from dbguard.introspection import CatalogInspector
from dbguard.utils.errors import handle_error
from dbguard.utils.formatting import ResponseFormat, dumps, format_query_results


class ExecuteQueryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    sql: str = Field(
        ...,
        description="SQL statement to execute; use %s placeholders for parameters",
        min_length=1,
        max_length=50000,
    )
    params: list[Any] = Field(
        default_factory=list,
        description="Positional parameter values bound to %s placeholders",
    )
    max_rows: Optional[int] = Field(
        default=None,
        description="Maximum rows to return (capped by the server's row limit)",
        ge=1,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_query_tools(
    mcp: FastMCP, executor: QueryExecutor, inspector: CatalogInspector
):

    @mcp.tool(
        name="dbguard_execute_query",
        annotations={
            "title": "Execute SQL Statement",
            "readOnlyHint": executor.config.is_read_only,
            "destructiveHint": executor.config.is_dangerous_allowed,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def dbguard_execute_query(params: ExecuteQueryInput) -> str:
        """Execute a single SQL statement against the connected PostgreSQL database.

        The statement is checked against the server's security mode first:
        readonly allows SELECT/WITH/SHOW/DESCRIBE/EXPLAIN/ANALYZE,
        limited_write adds INSERT/UPDATE, full_access allows everything.
        Only one statement per call. Read results are capped at the server's
        row limit; writes return the number of affected rows.
        """
        try:
            result = await executor.execute(
                params.sql,
                params.params,
                max_rows=params.max_rows,
                tool_name="execute_query",
            )
            return format_query_results(result, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="dbguard_security_info",
        annotations={
            "title": "Show Security Configuration",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def dbguard_security_info() -> str:
        """Show the active security mode, allowed schemas and result limits."""
        return dumps(inspector.security_info())

    @mcp.tool(
        name="dbguard_test_connection",
        annotations={
            "title": "Test Database Connection",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def dbguard_test_connection() -> str:
        """Check that the database is reachable with the configured credentials."""
        try:
            if await inspector.test_connection():
                return "Connection OK."
            return "Error: Connection test failed. Check the server logs for details."
        except Exception as e:
            return handle_error(e)
