"""Configuration for the dbguard MCP server.

Loaded once at startup from an optional YAML file plus environment variables
(env vars take precedence), validated, and frozen for the process lifetime.
"""
import os
import logging
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from psycopg.conninfo import make_conninfo

from dbguard.governance.policy import SecurityMode
from dbguard.governance.schema_guard import SchemaAllowList
from dbguard.utils.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "DBGUARD_"
CONFIG_PATH_ENV = "DBGUARD_CONFIG"

REQUIRED_SETTINGS = ("host", "user", "password", "database")

SQL_PARSERS = ("keyword", "tokenizer")
TRANSPORTS = ("stdio", "streamable-http", "sse")


@dataclass(frozen=True)
class GatewayConfig:
    """Resolved server configuration. Immutable after startup."""

    # PostgreSQL connection
    host: str = ""
    port: int = 5432
    user: str = ""
    password: str = field(default="", repr=False)
    database: str = ""
    default_schema: str = "public"
    sslmode: str = "prefer"
    connect_timeout: int = 30

    # Execution
    query_timeout: int = 60
    max_retries: int = 3
    retry_base_delay: float = 1.0
    max_result_rows: int = 1000
    enable_query_log: bool = False
    allow_multiple_statements: bool = False

    # Safety
    security_mode: SecurityMode = SecurityMode.READ_ONLY
    allowed_schemas: SchemaAllowList = field(
        default_factory=lambda: SchemaAllowList(wildcard=True)
    )
    sql_parser: str = "keyword"

    # Pool settings
    pool_min_size: int = 1
    pool_max_size: int = 10
    pool_acquire_timeout: float = 30.0
    pool_max_lifetime: int = 300
    pool_max_idle: int = 60

    # MCP transport
    transport: str = "stdio"
    http_port: int = 8000

    def __post_init__(self):
        if not 1 <= self.port <= 65535:
            raise ConfigError("port must be between 1 and 65535")
        if self.allowed_schemas.is_empty:
            raise ConfigError("at least one allowed schema must be configured")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.retry_base_delay < 0:
            raise ConfigError("retry_base_delay must not be negative")
        if self.max_result_rows < 1:
            raise ConfigError("max_result_rows must be at least 1")
        if not 1 <= self.pool_min_size <= self.pool_max_size:
            raise ConfigError("pool sizes must satisfy 1 <= pool_min_size <= pool_max_size")
        if self.sql_parser not in SQL_PARSERS:
            raise ConfigError(
                f"invalid sql_parser '{self.sql_parser}', supported: {', '.join(SQL_PARSERS)}"
            )
        if self.transport not in TRANSPORTS:
            raise ConfigError(
                f"invalid transport '{self.transport}', supported: {', '.join(TRANSPORTS)}"
            )

    @property
    def is_read_only(self) -> bool:
        return self.security_mode == SecurityMode.READ_ONLY

    @property
    def is_write_allowed(self) -> bool:
        return self.security_mode in (SecurityMode.LIMITED_WRITE, SecurityMode.FULL_ACCESS)

    @property
    def is_dangerous_allowed(self) -> bool:
        return self.security_mode == SecurityMode.FULL_ACCESS

    @property
    def conninfo(self) -> str:
        """psycopg conninfo string, with every value quoted as needed."""
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password or None,
            sslmode=self.sslmode,
            connect_timeout=self.connect_timeout,
            application_name="dbguard",
        )


def _load_yaml_config(path: str) -> dict:
    """Load settings from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"config file not found: {path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file must contain a mapping: {path}")
    return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_mode(value: Any) -> SecurityMode:
    try:
        return SecurityMode(str(value).strip().lower())
    except ValueError:
        supported = ", ".join(m.value for m in SecurityMode)
        raise ConfigError(
            f"invalid security mode '{value}', supported modes: {supported}"
        ) from None


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/env value to the field's type."""
    if name == "security_mode":
        return _parse_mode(value)
    if name == "allowed_schemas":
        return SchemaAllowList.parse(value)
    default = _DEFAULTS[name]
    try:
        if isinstance(default, bool):
            return _parse_bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid value for {name}: {value!r}") from None
    return str(value)


_FIELD_NAMES = tuple(f.name for f in fields(GatewayConfig))
_DEFAULTS = {
    f.name: f.default for f in fields(GatewayConfig) if f.default is not MISSING
}


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GatewayConfig:
    """Load config from an optional YAML file + DBGUARD_* env vars.

    Env vars take precedence over YAML for all settings. Raises ConfigError
    listing every missing required setting.
    """
    env = os.environ if environ is None else environ

    yaml_path = path or env.get(CONFIG_PATH_ENV, "")
    raw: dict[str, Any] = {}
    if yaml_path:
        raw.update(_load_yaml_config(yaml_path))
        logger.info(f"Loaded configuration file {yaml_path}")

    unknown = sorted(set(raw) - set(_FIELD_NAMES))
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    for name in _FIELD_NAMES:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            raw[name] = value

    missing = [
        ENV_PREFIX + name.upper()
        for name in REQUIRED_SETTINGS
        if not str(raw.get(name, "") or "").strip()
    ]
    if missing:
        raise ConfigError(f"missing required settings: {', '.join(missing)}")

    values = {
        name: _coerce(name, raw[name])
        for name in _FIELD_NAMES
        if name in raw and raw[name] is not None
    }
    return GatewayConfig(**values)
