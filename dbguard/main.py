"""dbguard MCP server: main entry point.

Configuration is loaded once here and every collaborator (pool, executor,
schema guard, catalog inspector) is constructed explicitly and handed to the
tool modules. Logs go to stderr; stdout belongs to the stdio transport.
"""
import sys
import logging
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from dbguard.config import GatewayConfig, load_config
from dbguard.db import DatabasePool
from dbguard.executor import QueryExecutor
from dbguard.governance.schema_guard import SchemaGuard
from dbguard.introspection import CatalogInspector
from dbguard.resources.tables import register_table_resources
from dbguard.tools.query import register_query_tools
from dbguard.tools.schema import register_schema_tools
from dbguard.utils.errors import ConfigError

logger = logging.getLogger(__name__)


def create_server(config: GatewayConfig, pool: DatabasePool = None) -> FastMCP:
    """Build the MCP server and its collaborators from a resolved config."""
    pool = pool or DatabasePool(config)
    executor = QueryExecutor(pool, config)
    guard = SchemaGuard(config.allowed_schemas)
    inspector = CatalogInspector(executor, guard, default_schema=config.default_schema)

    @asynccontextmanager
    async def app_lifespan(server: FastMCP):
        """Open the pool on startup and close it on shutdown."""
        try:
            await pool.open()
            logger.info(
                f"dbguard MCP server started (mode={config.security_mode.value}, "
                f"schemas={config.allowed_schemas.display()})"
            )
        except Exception as e:
            logger.warning(f"Pool initialization failed (tools will report errors): {e}")

        try:
            yield {"pool": pool, "executor": executor, "inspector": inspector}
        finally:
            await pool.close()
            logger.info("dbguard MCP server stopped")

    mcp = FastMCP(
        "dbguard_mcp",
        lifespan=app_lifespan,
        host="0.0.0.0",
        port=config.http_port,
    )

    register_query_tools(mcp, executor, inspector)
    register_schema_tools(mcp, inspector)
    register_table_resources(mcp, inspector)
    return mcp


def main():
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Configuration failed: {e}")
        sys.exit(1)

    mcp = create_server(config)
    mcp.run(transport=config.transport)


if __name__ == "__main__":
    main()
