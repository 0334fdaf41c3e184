"""SQL statement classification.

Maps raw statement text to an operation class using the leading keyword and
a literal phrase scan for side effects embedded in SELECT statements. This
is a heuristic, not a parser. The optional tokenizer mode rebuilds the text
from sqlglot tokens first, so comments cannot hide the leading keyword and
keywords inside string literals are not matched.
"""
import re
import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass

import sqlglot
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

logger = logging.getLogger(__name__)


class OperationClass(str, Enum):
    """Semantic bucket a statement is sorted into before policy evaluation."""

    READ_ONLY = "read_only"
    WRITE = "write"
    DANGEROUS = "dangerous"
    UNKNOWN = "unknown"


READ_KEYWORDS = frozenset({"SELECT", "WITH", "SHOW", "DESCRIBE", "EXPLAIN", "ANALYZE"})
WRITE_KEYWORDS = frozenset({"INSERT", "UPDATE"})
DANGEROUS_KEYWORDS = frozenset(
    {"DELETE", "DROP", "CREATE", "ALTER", "TRUNCATE", "GRANT", "REVOKE"}
)

_KEYWORD_CLASSES: dict[str, OperationClass] = {
    **{k: OperationClass.READ_ONLY for k in READ_KEYWORDS},
    **{k: OperationClass.WRITE for k in WRITE_KEYWORDS},
    **{k: OperationClass.DANGEROUS for k in DANGEROUS_KEYWORDS},
}

# Side-effect clauses that must never ride along inside a SELECT
_SIDE_EFFECT_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("DROP TABLE", re.compile(r"\bDROP\s+TABLE\b")),
    ("TRUNCATE TABLE", re.compile(r"\bTRUNCATE\s+TABLE\b")),
    ("DELETE FROM", re.compile(r"\bDELETE\s+FROM\b")),
    ("INSERT INTO", re.compile(r"\bINSERT\s+INTO\b")),
    ("UPDATE ... SET", re.compile(r"\bUPDATE\s+[\w.\"]+\s+SET\b")),
    ("CREATE TABLE", re.compile(r"\bCREATE\s+TABLE\b")),
    ("ALTER TABLE", re.compile(r"\bALTER\s+TABLE\b")),
)

_WORD = re.compile(r"[A-Z_][A-Z0-9_$]*")
_WHITESPACE = re.compile(r"\s+")

# Literal and quoted-identifier tokens are replaced by a placeholder in
# tokenizer mode
_LITERAL_TOKENS = frozenset(
    {
        TokenType.STRING,
        TokenType.NATIONAL_STRING,
        TokenType.RAW_STRING,
        TokenType.HEX_STRING,
        TokenType.BYTE_STRING,
        TokenType.BIT_STRING,
        TokenType.HEREDOC_STRING,
        TokenType.IDENTIFIER,
    }
)


@dataclass(frozen=True)
class ClassifiedStatement:
    """A statement after classification."""

    sql: str
    normalized: str
    keyword: str
    operation: OperationClass
    embedded_clause: Optional[str] = None
    statement_count: int = 1

    @property
    def is_read(self) -> bool:
        """True when the leading keyword produces a row set."""
        return self.keyword in READ_KEYWORDS

    def words(self) -> frozenset[str]:
        """All SQL words appearing anywhere in the normalized text."""
        return frozenset(_WORD.findall(self.normalized))


def normalize(sql: str) -> str:
    """Upper-case and collapse whitespace."""
    return _WHITESPACE.sub(" ", (sql or "").upper()).strip()


def leading_keyword(normalized: str) -> str:
    match = _WORD.match(normalized)
    return match.group(0) if match else ""


def find_embedded_clause(normalized: str) -> Optional[str]:
    """Return the first side-effect phrase found in the text, if any."""
    for label, pattern in _SIDE_EFFECT_PATTERNS:
        if pattern.search(normalized):
            return label
    return None


def _tokenize(sql: str) -> list:
    return sqlglot.tokenize(sql, read="postgres")


def _count_statements(tokens: list) -> int:
    count = 0
    in_statement = False
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            in_statement = False
            continue
        if not in_statement:
            count += 1
            in_statement = True
    return count


def count_statements(sql: str) -> int:
    """Count non-empty statements separated by semicolons.

    Semicolons inside string literals are not separators. Falls back to a
    plain split when the text cannot be tokenized.
    """
    try:
        return _count_statements(_tokenize(sql))
    except (TokenError, ValueError):
        return _split_count(sql)


def _split_count(sql: str) -> int:
    return len([part for part in (sql or "").split(";") if part.strip()])


class StatementClassifier:
    """Classifies statements into operation classes.

    Args:
        strict: Rebuild the normalized text from sqlglot tokens with string
            literals, quoted identifiers and comments removed. Text the
            tokenizer rejects classifies as UNKNOWN.
    """

    def __init__(self, strict: bool = False):
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def analyze(self, sql: str) -> ClassifiedStatement:
        """Classify a statement. Never raises."""
        sql = sql or ""
        try:
            tokens = _tokenize(sql)
        except (TokenError, ValueError) as e:
            tokens = None
            logger.debug(f"Could not tokenize SQL: {e}")

        if self._strict:
            if tokens is None:
                return ClassifiedStatement(
                    sql=sql,
                    normalized=normalize(sql),
                    keyword="",
                    operation=OperationClass.UNKNOWN,
                    statement_count=_split_count(sql),
                )
            text = " ".join(
                "?" if t.token_type in _LITERAL_TOKENS else t.text for t in tokens
            )
            normalized = normalize(text)
        else:
            normalized = normalize(sql)

        if tokens is not None:
            statement_count = _count_statements(tokens)
        else:
            statement_count = _split_count(sql)

        keyword = leading_keyword(normalized)
        operation = _KEYWORD_CLASSES.get(keyword, OperationClass.UNKNOWN)

        embedded = None
        if keyword == "SELECT":
            embedded = find_embedded_clause(normalized)
            if embedded:
                operation = OperationClass.DANGEROUS

        return ClassifiedStatement(
            sql=sql,
            normalized=normalized,
            keyword=keyword,
            operation=operation,
            embedded_clause=embedded,
            statement_count=statement_count,
        )

    def classify(self, sql: str) -> OperationClass:
        return self.analyze(sql).operation


_default_classifier = StatementClassifier()


def classify(sql: str) -> OperationClass:
    """Classify a statement with the default keyword heuristic."""
    return _default_classifier.classify(sql)
