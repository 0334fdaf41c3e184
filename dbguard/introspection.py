"""Metadata introspection built on the executor and the schema guard.

Every call runs under forced read-only semantics, whatever the configured
security mode, and binds names as parameters. The only raw text embedded in
executable SQL is the sample_data table identifier, checked against
IDENTIFIER_PATTERN first.
"""
import re
import logging
from typing import Any, Optional

from dbguard.executor import RETRYABLE_ERRORS, QueryExecutor
from dbguard.governance.schema_guard import SchemaGuard
from dbguard.models import (
    ColumnInfo,
    ConstraintInfo,
    IndexInfo,
    SchemaInfo,
    TableDescription,
    TableMatch,
    TableStats,
    TableSummary,
)
from dbguard.utils.errors import InvalidIdentifier, NotFound

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

_LIST_SCHEMAS_SQL = """
SELECT n.nspname AS schema_name,
       pg_catalog.pg_get_userbyid(n.nspowner) AS schema_owner
FROM pg_catalog.pg_namespace n
WHERE n.nspname !~ '^pg_' AND n.nspname <> 'information_schema'
ORDER BY n.nspname
"""

_LIST_TABLES_SQL = """
SELECT t.table_name,
       t.table_type,
       obj_description(c.oid, 'pg_class') AS table_comment,
       GREATEST(c.reltuples, 0)::bigint AS row_estimate
FROM information_schema.tables t
JOIN pg_catalog.pg_namespace n ON n.nspname = t.table_schema
JOIN pg_catalog.pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
WHERE t.table_schema = %s
ORDER BY t.table_name
"""

_TABLE_STRUCTURE_SQL = """
SELECT c.column_name,
       c.data_type,
       c.character_maximum_length,
       c.numeric_precision,
       c.numeric_scale,
       c.is_nullable,
       c.column_default,
       c.ordinal_position,
       EXISTS (
           SELECT 1
           FROM information_schema.table_constraints tc
           JOIN information_schema.key_column_usage kcu
             ON kcu.constraint_name = tc.constraint_name
            AND kcu.constraint_schema = tc.constraint_schema
            AND kcu.table_name = tc.table_name
           WHERE tc.constraint_type = 'PRIMARY KEY'
             AND tc.table_schema = c.table_schema
             AND tc.table_name = c.table_name
             AND kcu.column_name = c.column_name
       ) AS is_primary_key,
       col_description(
           (quote_ident(c.table_schema) || '.' || quote_ident(c.table_name))::regclass,
           c.ordinal_position::int
       ) AS column_comment
FROM information_schema.columns c
WHERE c.table_schema = %s AND c.table_name = %s
ORDER BY c.ordinal_position
"""

_TABLE_INDEXES_SQL = """
SELECT i.relname AS index_name,
       pg_get_indexdef(ix.indexrelid) AS index_definition,
       ix.indisunique AS is_unique
FROM pg_catalog.pg_index ix
JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
WHERE n.nspname = %s AND t.relname = %s AND NOT ix.indisprimary
ORDER BY i.relname
"""

_TABLE_CONSTRAINTS_SQL = """
SELECT tc.constraint_name,
       tc.constraint_type,
       kcu.column_name,
       CASE WHEN tc.constraint_type = 'FOREIGN KEY'
            THEN ccu.table_schema || '.' || ccu.table_name || '.' || ccu.column_name
       END AS foreign_key_references
FROM information_schema.table_constraints tc
LEFT JOIN information_schema.key_column_usage kcu
  ON kcu.constraint_name = tc.constraint_name
 AND kcu.constraint_schema = tc.constraint_schema
 AND kcu.table_name = tc.table_name
LEFT JOIN information_schema.constraint_column_usage ccu
  ON tc.constraint_type = 'FOREIGN KEY'
 AND ccu.constraint_name = tc.constraint_name
 AND ccu.constraint_schema = tc.constraint_schema
WHERE tc.table_schema = %s AND tc.table_name = %s
ORDER BY tc.constraint_type, tc.constraint_name
"""

_TABLE_STATS_SQL = """
SELECT c.relname AS table_name,
       GREATEST(c.reltuples, 0)::bigint AS row_estimate,
       s.n_live_tup AS live_rows,
       pg_relation_size(c.oid) AS data_size,
       pg_indexes_size(c.oid) AS index_size,
       pg_total_relation_size(c.oid) AS total_size,
       GREATEST(s.last_analyze, s.last_autoanalyze) AS last_analyzed,
       obj_description(c.oid, 'pg_class') AS table_comment
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_catalog.pg_stat_user_tables s ON s.relid = c.oid
WHERE n.nspname = %s AND c.relname = %s AND c.relkind IN ('r', 'p', 'm')
"""

_FIND_TABLES_SQL = """
SELECT t.table_name,
       obj_description(c.oid, 'pg_class') AS table_comment,
       GREATEST(c.reltuples, 0)::bigint AS row_estimate
FROM information_schema.tables t
JOIN pg_catalog.pg_namespace n ON n.nspname = t.table_schema
JOIN pg_catalog.pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
WHERE t.table_schema = %s AND t.table_name {match} %s
ORDER BY t.table_name
"""


_SAMPLE_DATA_SQL = 'SELECT * FROM "{schema}"."{table}" LIMIT %s'


def validate_identifier(name: str, kind: str = "table") -> str:
    """Return name unchanged or raise InvalidIdentifier."""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise InvalidIdentifier(str(name), kind)
    return name


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _yes(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "TRUE", "T")
    return bool(value)


class CatalogInspector:
    """Read-only metadata operations against the connected database."""

    def __init__(
        self,
        executor: QueryExecutor,
        guard: SchemaGuard,
        default_schema: str = "public",
    ):
        self._executor = executor
        self._guard = guard
        self._default_schema = default_schema

    @property
    def default_schema(self) -> str:
        return self._default_schema

    def _schema(self, schema: Optional[str]) -> str:
        return self._guard.check(schema or self._default_schema)

    async def _query(
        self, sql: str, params: tuple = None, tool_name: str = None, check_sql: str = None
    ) -> list[dict]:
        return await self._executor.execute(
            sql, params, force_read_only=True, tool_name=tool_name, check_sql=check_sql
        )

    async def list_schemas(self) -> list[SchemaInfo]:
        """Non-system schemas the allow-list permits."""
        rows = await self._query(_LIST_SCHEMAS_SQL, tool_name="list_schemas")
        return [
            SchemaInfo(**row)
            for row in rows
            if self._guard.is_allowed(row["schema_name"])
        ]

    async def list_tables(self, schema: Optional[str] = None) -> list[TableSummary]:
        schema = self._schema(schema)
        rows = await self._query(_LIST_TABLES_SQL, (schema,), tool_name="list_tables")
        return [
            TableSummary(
                table_name=row["table_name"],
                table_type=row.get("table_type") or "BASE TABLE",
                comment=row.get("table_comment") or "",
                row_estimate=row.get("row_estimate") or 0,
            )
            for row in rows
        ]

    async def table_structure(
        self, table: str, schema: Optional[str] = None
    ) -> list[ColumnInfo]:
        schema = self._schema(schema)
        rows = await self._query(
            _TABLE_STRUCTURE_SQL, (schema, table), tool_name="table_structure"
        )
        if not rows:
            raise NotFound(f"Table '{schema}.{table}' does not exist")
        return [
            ColumnInfo(
                column_name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=_yes(row.get("is_nullable")),
                column_default=row.get("column_default"),
                ordinal_position=row["ordinal_position"],
                is_primary_key=_yes(row.get("is_primary_key")),
                comment=row.get("column_comment") or "",
                character_maximum_length=row.get("character_maximum_length"),
                numeric_precision=row.get("numeric_precision"),
                numeric_scale=row.get("numeric_scale"),
            )
            for row in rows
        ]

    async def table_indexes(
        self, table: str, schema: Optional[str] = None
    ) -> list[IndexInfo]:
        """Secondary indexes. Lookup failures degrade to an empty list."""
        schema = self._schema(schema)
        try:
            rows = await self._query(
                _TABLE_INDEXES_SQL, (schema, table), tool_name="table_indexes"
            )
        except RETRYABLE_ERRORS as e:
            logger.warning(f"Index lookup failed for {schema}.{table}: {e}")
            return []
        return [
            IndexInfo(
                index_name=row["index_name"],
                definition=row["index_definition"],
                is_unique=_yes(row.get("is_unique")),
            )
            for row in rows
        ]

    async def table_constraints(
        self, table: str, schema: Optional[str] = None
    ) -> list[ConstraintInfo]:
        """Constraints with FK references. Lookup failures degrade to an empty list."""
        schema = self._schema(schema)
        try:
            rows = await self._query(
                _TABLE_CONSTRAINTS_SQL, (schema, table), tool_name="table_constraints"
            )
        except RETRYABLE_ERRORS as e:
            logger.warning(f"Constraint lookup failed for {schema}.{table}: {e}")
            return []
        return [
            ConstraintInfo(
                constraint_name=row["constraint_name"],
                constraint_type=row["constraint_type"],
                column_name=row.get("column_name"),
                references=row.get("foreign_key_references"),
            )
            for row in rows
        ]

    async def describe_table(
        self, table: str, schema: Optional[str] = None
    ) -> TableDescription:
        schema = self._schema(schema)
        columns = await self.table_structure(table, schema)
        indexes = await self.table_indexes(table, schema)
        constraints = await self.table_constraints(table, schema)
        return TableDescription(
            table_name=table,
            schema_name=schema,
            columns=columns,
            indexes=indexes,
            constraints=constraints,
        )

    async def table_stats(self, table: str, schema: Optional[str] = None) -> TableStats:
        schema = self._schema(schema)
        rows = await self._query(_TABLE_STATS_SQL, (schema, table), tool_name="table_stats")
        if not rows:
            raise NotFound(f"Table '{schema}.{table}' does not exist")
        row = rows[0]
        return TableStats(
            table_name=row["table_name"],
            schema_name=schema,
            row_estimate=row.get("row_estimate") or 0,
            live_rows=row.get("live_rows"),
            data_size=row.get("data_size") or 0,
            index_size=row.get("index_size") or 0,
            total_size=row.get("total_size") or 0,
            last_analyzed=row.get("last_analyzed"),
            comment=row.get("table_comment") or "",
        )

    async def sample_data(
        self, table: str, limit: int = 5, schema: Optional[str] = None
    ) -> list[dict]:
        """First rows of a table.

        Table identifiers cannot be bound as parameters, so the name is
        checked against IDENTIFIER_PATTERN before the statement is built.
        """
        validate_identifier(table, "table")
        if schema is not None:
            validate_identifier(schema, "schema")
        schema = self._schema(schema)
        limit = max(1, min(int(limit), self._executor.config.max_result_rows))
        sql = _SAMPLE_DATA_SQL.format(schema=schema, table=table)
        # Quoted names such as "grant" are identifiers, not keywords
        template = _SAMPLE_DATA_SQL.format(schema="s", table="t")
        return await self._query(
            sql, (limit,), tool_name="sample_data", check_sql=template
        )

    async def find_tables(
        self, keyword: str, exact: bool = False, schema: Optional[str] = None
    ) -> list[TableMatch]:
        """Tables whose name equals (exact) or contains (fuzzy) the keyword."""
        schema = self._schema(schema)
        if exact:
            sql = _FIND_TABLES_SQL.format(match="=")
            pattern = keyword
        else:
            sql = _FIND_TABLES_SQL.format(match="LIKE")
            pattern = f"%{escape_like(keyword)}%"
        rows = await self._query(sql, (schema, pattern), tool_name="find_tables")
        match_type = "exact" if exact else "fuzzy"
        return [
            TableMatch(
                table_name=row["table_name"],
                comment=row.get("table_comment") or "",
                row_count=row.get("row_estimate") or 0,
                match_type=match_type,
            )
            for row in rows
        ]

    async def test_connection(self) -> bool:
        try:
            rows = await self._query("SELECT 1 AS test_connection", tool_name="test_connection")
        except RETRYABLE_ERRORS as e:
            logger.error(f"Connection test failed: {e}")
            return False
        return bool(rows) and rows[0].get("test_connection") == 1

    def security_info(self) -> dict[str, Any]:
        cfg = self._executor.config
        return {
            "security_mode": cfg.security_mode.value,
            "allowed_schemas": self._guard.allow_list.as_list(),
            "default_schema": self._default_schema,
            "readonly_mode": cfg.is_read_only,
            "write_allowed": cfg.is_write_allowed,
            "dangerous_operations_allowed": cfg.is_dangerous_allowed,
            "max_result_rows": cfg.max_result_rows,
            "max_retries": cfg.max_retries,
            "query_log_enabled": cfg.enable_query_log,
            "sql_parser": cfg.sql_parser,
        }
