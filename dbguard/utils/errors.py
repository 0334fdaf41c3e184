"""Error taxonomy and centralized, actionable error messages.

Policy, guard and identifier errors are raised before any connection is
leased. Database failures are the driver's own exceptions (psycopg.Error or
OSError); the executor retries them and re-raises the last one unchanged.
"""
import psycopg


class DBGuardError(Exception):
    """Base class for errors raised by the gateway itself."""


class PolicyViolation(DBGuardError):
    """Statement class or embedded keyword is forbidden under the active mode."""

    def __init__(self, message: str, keyword: str = None, mode: str = None):
        super().__init__(message)
        self.keyword = keyword
        self.mode = mode


class SchemaAccessDenied(DBGuardError):
    """Requested schema is not in the configured allow-list."""

    def __init__(self, schema: str, allowed: str):
        super().__init__(
            f"Access to schema '{schema}' is not allowed. Allowed schemas: {allowed}"
        )
        self.schema = schema
        self.allowed = allowed


class InvalidIdentifier(DBGuardError):
    """Identifier failed the strict pattern check before SQL was built."""

    def __init__(self, identifier: str, kind: str = "table"):
        super().__init__(
            f"Invalid {kind} name '{identifier}': only letters, digits and "
            "underscores are allowed"
        )
        self.identifier = identifier


class NotFound(DBGuardError):
    """A requested table or object yielded zero metadata rows."""


class ConfigError(DBGuardError):
    """Configuration is missing or invalid at startup."""


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Policy / schema / identifier rejections (fix the request, do not retry)
    - Missing objects
    - Connectivity failures that survived every retry attempt
    - Permission / syntax / timeout errors from PostgreSQL
    """
    if isinstance(e, PolicyViolation):
        return f"Error: Statement rejected by security policy. {e}"

    if isinstance(e, SchemaAccessDenied):
        return (
            f"Error: {e}. Use dbguard_list_schemas to see the schemas "
            "this server may access."
        )

    if isinstance(e, InvalidIdentifier):
        return f"Error: {e}."

    if isinstance(e, NotFound):
        return (
            f"Error: {e}. Use dbguard_find_tables or dbguard_list_tables "
            "to discover available tables."
        )

    if isinstance(e, ConfigError):
        return f"Error: Server configuration is invalid: {e}"

    if isinstance(e, psycopg.errors.ReadOnlySqlTransaction):
        return (
            "Error: The session is read-only. Writes are refused in the "
            "current security mode."
        )

    if isinstance(e, psycopg.errors.InsufficientPrivilege):
        return (
            "Error: Permission denied. The database role used by this server "
            "does not have the privileges required for this operation."
        )

    if isinstance(e, psycopg.errors.UndefinedTable):
        table = str(e).split('"')[1] if '"' in str(e) else "unknown"
        return (
            f"Error: Table '{table}' does not exist. "
            "Use dbguard_list_tables to discover available tables, "
            "or dbguard_list_schemas to check schema names."
        )

    if isinstance(e, psycopg.errors.SyntaxError):
        return f"Error: SQL syntax error: {str(e).strip()}. Check your query and try again."

    if isinstance(e, psycopg.errors.QueryCanceled):
        return "Error: Query timed out. Try limiting rows with LIMIT or simplifying the query."

    if isinstance(e, psycopg.OperationalError):
        msg = str(e).lower()
        if "connection refused" in msg or "could not connect" in msg:
            return (
                "Error: Cannot connect to the database. Check that the server "
                "is running and reachable, then try again."
            )
        if "terminating connection" in msg or "server closed" in msg:
            return (
                "Error: Connection was terminated by the server. "
                "Retry your query; the connection pool will reconnect automatically."
            )

    if isinstance(e, TimeoutError):
        return (
            "Error: Timed out waiting for a database connection. "
            "The pool may be exhausted or the server unreachable."
        )

    return f"Error: {type(e).__name__}: {str(e)}"
