"""Policy-gated query execution with retry and result shaping.

Per request: Pending -> Leased -> Executing -> {Succeeded, Retrying, Failed}.
Policy rejections happen before a connection is leased. Every attempt leases
its own connection and releases it before any retry delay.
"""
import asyncio
import logging
from typing import Any, Optional, Sequence, Union

import psycopg

from dbguard.config import GatewayConfig
from dbguard.db import DatabasePool
from dbguard.governance.policy import SecurityMode, SQLPolicy
from dbguard.governance.sql_guard import ClassifiedStatement, StatementClassifier
from dbguard.utils.errors import PolicyViolation

logger = logging.getLogger(__name__)

Rows = list[dict[str, Any]]
WriteResult = dict[str, Any]
QueryResult = Union[Rows, WriteResult]

# Failures raised by the driver or socket layer during a leased attempt
RETRYABLE_ERRORS = (psycopg.Error, OSError)


class QueryExecutor:
    """Executes statements under the configured security mode."""

    def __init__(
        self,
        pool: DatabasePool,
        config: GatewayConfig,
        classifier: Optional[StatementClassifier] = None,
    ):
        self._pool = pool
        self._config = config
        classifier = classifier or StatementClassifier(
            strict=config.sql_parser == "tokenizer"
        )
        self._policy = SQLPolicy(config.security_mode, classifier)
        self._read_only_policy = SQLPolicy(SecurityMode.READ_ONLY, classifier)

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def policy(self) -> SQLPolicy:
        return self._policy

    def check(self, sql: str, force_read_only: bool = False) -> ClassifiedStatement:
        """Run every network-free check and return the classified statement."""
        policy = self._read_only_policy if force_read_only else self._policy
        statement = policy.enforce(sql)
        if statement.statement_count > 1 and not self._config.allow_multiple_statements:
            raise PolicyViolation(
                "Multiple statements in one request are not allowed",
                mode=policy.mode.value,
            )
        return statement

    async def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        *,
        force_read_only: bool = False,
        max_rows: Optional[int] = None,
        tool_name: Optional[str] = None,
        check_sql: Optional[str] = None,
    ) -> QueryResult:
        """Execute a statement and return rows or an affected-row count.

        Args:
            sql: Statement text. Parameters are bound positionally (%s),
                never interpolated.
            params: Positional parameter values.
            force_read_only: Check against the readonly policy and mark the
                session read-only regardless of the configured mode.
            max_rows: Lower the row cap for this call.
            tool_name: Tag the statement with a comment naming the caller.
            check_sql: Text to classify in place of sql. Only for statements
                whose variable parts are identifiers that were validated
                before interpolation.

        Raises:
            PolicyViolation: Before any connection is leased.
            psycopg.Error / OSError: The last failure once retries are exhausted.
        """
        cfg = self._config
        statement = self.check(check_sql or sql, force_read_only=force_read_only)

        read_only = force_read_only or cfg.is_read_only
        effective_max = min(max_rows or cfg.max_result_rows, cfg.max_result_rows)
        bound = tuple(params) if params else None
        tagged_sql = f"/* dbguard:{tool_name} */ {sql}" if tool_name else sql

        if cfg.enable_query_log:
            params_info = f" | params: {list(bound)}" if bound else ""
            mode = SecurityMode.READ_ONLY.value if force_read_only else cfg.security_mode.value
            logger.info(f"Executing SQL ({mode}): {sql}{params_info}")

        attempts = cfg.max_retries
        last_error: Optional[BaseException] = None
        for attempt in range(1, attempts + 1):
            try:
                async with self._pool.lease(read_only=read_only) as conn:
                    return await self._run(conn, statement, tagged_sql, bound, effective_max)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    f"SQL execution failed (attempt {attempt}/{attempts}): {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(attempt * cfg.retry_base_delay)

        logger.error(f"SQL execution failed after {attempts} attempts: {last_error}")
        raise last_error

    async def _run(
        self,
        conn: psycopg.AsyncConnection,
        statement: ClassifiedStatement,
        sql: str,
        params: Optional[tuple],
        max_rows: int,
    ) -> QueryResult:
        # A prepared statement holds exactly one command
        prepare = None if self._config.allow_multiple_statements else True
        async with conn.cursor() as cur:
            await cur.execute(sql, params, prepare=prepare)
            if statement.is_read:
                if cur.description is None:
                    return []
                rows = await cur.fetchmany(max_rows + 1)
                if len(rows) > max_rows:
                    logger.warning(
                        f"Query result exceeds the row limit ({max_rows}); truncating"
                    )
                    rows = rows[:max_rows]
                logger.info(f"Query succeeded, returned {len(rows)} row(s)")
                return [dict(row) for row in rows]

            affected = cur.rowcount if cur.rowcount and cur.rowcount > 0 else 0
            logger.info(f"Statement succeeded, {affected} row(s) affected")
            return {"affected_rows": affected, "status": "success"}
