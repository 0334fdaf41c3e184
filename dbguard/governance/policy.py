"""Security-mode policy enforcement.

A pure decision over (statement, mode). Rejections are deterministic and
never touch the network.
"""
import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass

from dbguard.governance.sql_guard import (
    DANGEROUS_KEYWORDS,
    WRITE_KEYWORDS,
    ClassifiedStatement,
    OperationClass,
    StatementClassifier,
)
from dbguard.utils.errors import PolicyViolation

logger = logging.getLogger(__name__)


class SecurityMode(str, Enum):
    """Process-wide permission level."""

    READ_ONLY = "readonly"
    LIMITED_WRITE = "limited_write"
    FULL_ACCESS = "full_access"


ALLOWED_CLASSES: dict[SecurityMode, frozenset[OperationClass]] = {
    SecurityMode.READ_ONLY: frozenset({OperationClass.READ_ONLY}),
    SecurityMode.LIMITED_WRITE: frozenset(
        {OperationClass.READ_ONLY, OperationClass.WRITE}
    ),
    SecurityMode.FULL_ACCESS: frozenset(
        {OperationClass.READ_ONLY, OperationClass.WRITE, OperationClass.DANGEROUS}
    ),
}

# Keywords that may not appear anywhere in a statement under each mode
FORBIDDEN_KEYWORDS: dict[SecurityMode, frozenset[str]] = {
    SecurityMode.READ_ONLY: WRITE_KEYWORDS | DANGEROUS_KEYWORDS,
    SecurityMode.LIMITED_WRITE: DANGEROUS_KEYWORDS,
    SecurityMode.FULL_ACCESS: frozenset(),
}

_MODE_LABELS = {
    SecurityMode.READ_ONLY: "read-only",
    SecurityMode.LIMITED_WRITE: "limited-write",
    SecurityMode.FULL_ACCESS: "full-access",
}


@dataclass(frozen=True)
class PolicyDecision:
    """Result of checking a statement against a security mode."""

    allowed: bool
    statement: ClassifiedStatement
    mode: SecurityMode
    offending_keyword: Optional[str] = None
    reason: str = ""

    @property
    def operation(self) -> OperationClass:
        return self.statement.operation


class SQLPolicy:
    """Decides whether a statement may execute under a security mode."""

    def __init__(
        self,
        mode: SecurityMode,
        classifier: Optional[StatementClassifier] = None,
    ):
        self._mode = SecurityMode(mode)
        self._classifier = classifier or StatementClassifier()

    @property
    def mode(self) -> SecurityMode:
        return self._mode

    @property
    def classifier(self) -> StatementClassifier:
        return self._classifier

    def check(self, sql: str) -> PolicyDecision:
        statement = self._classifier.analyze(sql)
        return self.decide(statement)

    def decide(self, statement: ClassifiedStatement) -> PolicyDecision:
        mode = self._mode
        label = _MODE_LABELS[mode]
        keyword = statement.keyword or "<empty>"

        if statement.operation == OperationClass.UNKNOWN:
            return PolicyDecision(
                allowed=False,
                statement=statement,
                mode=mode,
                offending_keyword=statement.keyword or None,
                reason=f"Unsupported operation in {label} mode: {keyword}",
            )

        if statement.operation not in ALLOWED_CLASSES[mode]:
            if statement.embedded_clause:
                reason = (
                    f"Embedded '{statement.embedded_clause}' clause inside "
                    f"{statement.keyword} is not allowed in {label} mode"
                )
                offending = statement.embedded_clause
            else:
                reason = (
                    f"{statement.operation.value.replace('_', ' ').capitalize()} "
                    f"operation {keyword} is not allowed in {label} mode"
                )
                offending = statement.keyword
            return PolicyDecision(
                allowed=False,
                statement=statement,
                mode=mode,
                offending_keyword=offending,
                reason=reason,
            )

        forbidden = statement.words() & FORBIDDEN_KEYWORDS[mode]
        if forbidden:
            offending = sorted(forbidden)[0]
            return PolicyDecision(
                allowed=False,
                statement=statement,
                mode=mode,
                offending_keyword=offending,
                reason=(
                    f"Keyword {offending} is not allowed anywhere in a "
                    f"statement in {label} mode"
                ),
            )

        return PolicyDecision(allowed=True, statement=statement, mode=mode)

    def is_permitted(self, sql: str) -> bool:
        return self.check(sql).allowed

    def explain(self, sql: str) -> str:
        """Reason for rejecting a statement; empty when it is permitted."""
        return self.check(sql).reason

    def enforce(self, sql: str) -> ClassifiedStatement:
        """Return the classified statement or raise PolicyViolation."""
        decision = self.check(sql)
        if not decision.allowed:
            logger.warning(f"Statement rejected ({self._mode.value}): {decision.reason}")
            raise PolicyViolation(
                decision.reason,
                keyword=decision.offending_keyword,
                mode=self._mode.value,
            )
        return decision.statement


def validate(sql: str, mode: SecurityMode) -> bool:
    """True if the statement may execute under the given mode."""
    return SQLPolicy(mode).is_permitted(sql)


def explain(sql: str, mode: SecurityMode) -> str:
    """Reason the statement is rejected under the given mode."""
    return SQLPolicy(mode).explain(sql)
