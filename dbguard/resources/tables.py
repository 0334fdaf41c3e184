"""Table list resource, a read-only snapshot of the default schema."""
from mcp.server.fastmcp import FastMCP

from dbguard.introspection import CatalogInspector
from dbguard.utils.formatting import dumps

TABLES_URI = "dbguard://database/tables"


def register_table_resources(mcp: FastMCP, inspector: CatalogInspector):

    @mcp.resource(TABLES_URI, mime_type="application/json")
    async def get_tables() -> str:
        """All tables in the default schema as JSON."""
        tables = await inspector.list_tables()
        return dumps({"schema": inspector.default_schema, "tables": tables})
