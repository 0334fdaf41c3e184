"""Schema allow-list enforcement, independent of statement content."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Union

from dbguard.utils.errors import SchemaAccessDenied

logger = logging.getLogger(__name__)

WILDCARD = "*"
DISCOVER = "auto"


@dataclass(frozen=True)
class SchemaAllowList:
    """Configured set of schemas a process may touch.

    A wildcard or the discovery sentinel permits every schema. Discovery is
    a pass-through: no live existence check is made.
    """

    names: frozenset[str] = field(default_factory=frozenset)
    wildcard: bool = False
    discover: bool = False

    @classmethod
    def parse(cls, value: Union[str, Iterable[str], None]) -> "SchemaAllowList":
        """Parse "*", "auto", a comma-separated string or a list of names."""
        if value is None:
            return cls(wildcard=True)
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
        else:
            items = [str(item).strip() for item in value]
        items = [item for item in items if item]
        if WILDCARD in items:
            return cls(wildcard=True)
        if DISCOVER in items:
            return cls(discover=True)
        return cls(names=frozenset(items))

    @property
    def is_empty(self) -> bool:
        return not (self.wildcard or self.discover or self.names)

    def display(self) -> str:
        if self.wildcard:
            return "all schemas (*)"
        if self.discover:
            return "auto-discovery (auto)"
        return ", ".join(sorted(self.names))

    def as_list(self) -> list[str]:
        if self.wildcard:
            return [WILDCARD]
        if self.discover:
            return [DISCOVER]
        return sorted(self.names)


class SchemaGuard:
    """Decides whether a named schema may be touched."""

    def __init__(self, allow_list: SchemaAllowList):
        self._allow_list = allow_list

    @property
    def allow_list(self) -> SchemaAllowList:
        return self._allow_list

    def is_allowed(self, name: str) -> bool:
        if self._allow_list.wildcard:
            return True
        if self._allow_list.discover:
            return True
        return name in self._allow_list.names

    def check(self, name: str) -> str:
        """Return the schema name or raise SchemaAccessDenied."""
        if not self.is_allowed(name):
            logger.warning(f"Schema access denied: {name}")
            raise SchemaAccessDenied(name, self._allow_list.display())
        return name
