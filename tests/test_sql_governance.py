"""Test SQL statement classification.

Covers the keyword tables, normalization, the embedded side-effect scan on
SELECT, statement counting and the tokenizer hardening mode.
"""
import pytest
from dbguard.governance.sql_guard import (
    DANGEROUS_KEYWORDS,
    READ_KEYWORDS,
    WRITE_KEYWORDS,
    OperationClass,
    StatementClassifier,
    classify,
    count_statements,
    normalize,
)


# ── Keyword Tables ────────────────────────────────────────────────────

class TestKeywordTables:

    def test_read_keywords(self):
        assert READ_KEYWORDS == {"SELECT", "WITH", "SHOW", "DESCRIBE", "EXPLAIN", "ANALYZE"}

    def test_write_keywords(self):
        assert WRITE_KEYWORDS == {"INSERT", "UPDATE"}

    def test_dangerous_keywords(self):
        assert DANGEROUS_KEYWORDS == {
            "DELETE", "DROP", "CREATE", "ALTER", "TRUNCATE", "GRANT", "REVOKE",
        }

    def test_tables_are_disjoint(self):
        assert not READ_KEYWORDS & WRITE_KEYWORDS
        assert not READ_KEYWORDS & DANGEROUS_KEYWORDS
        assert not WRITE_KEYWORDS & DANGEROUS_KEYWORDS

    def test_tables_are_immutable(self):
        assert isinstance(READ_KEYWORDS, frozenset)


# ── Classification ────────────────────────────────────────────────────

class TestClassification:

    @pytest.mark.parametrize("sql", [
        "SELECT 1",
        "select * from users where id = 1",
        "WITH t AS (SELECT 1) SELECT * FROM t",
        "SHOW search_path",
        "DESCRIBE users",
        "EXPLAIN SELECT * FROM users",
        "ANALYZE users",
        "SELECT*FROM users",
    ])
    def test_read(self, sql):
        assert classify(sql) == OperationClass.READ_ONLY

    @pytest.mark.parametrize("sql", [
        "INSERT INTO t (a) VALUES (1)",
        "UPDATE t SET a = 1",
        "  update t set a = 1",
    ])
    def test_write(self, sql):
        assert classify(sql) == OperationClass.WRITE

    @pytest.mark.parametrize("sql", [
        "DELETE FROM t",
        "DROP TABLE t",
        "CREATE TABLE t (id int)",
        "ALTER TABLE t ADD COLUMN b int",
        "TRUNCATE t",
        "GRANT SELECT ON t TO bob",
        "REVOKE SELECT ON t FROM bob",
    ])
    def test_dangerous(self, sql):
        assert classify(sql) == OperationClass.DANGEROUS

    @pytest.mark.parametrize("sql", [
        "",
        "   ",
        "VACUUM t",
        "MERGE INTO t USING s ON t.id = s.id WHEN MATCHED THEN DO NOTHING",
        "CALL do_it()",
        "(SELECT 1)",
        "SELECT_thing FROM t",
        "/* comment */ SELECT 1",
        "12345",
    ])
    def test_unknown(self, sql):
        assert classify(sql) == OperationClass.UNKNOWN

    def test_none_is_unknown(self):
        assert classify(None) == OperationClass.UNKNOWN

    @pytest.mark.parametrize("sql", [
        "SELECT 'unterminated",
        "SELECT \"unterminated",
        "$$$$",
        "\x00\x01",
        "SELECT /* never closed",
    ])
    def test_classification_never_raises(self, sql):
        for classifier in (StatementClassifier(), StatementClassifier(strict=True)):
            assert classifier.classify(sql) in set(OperationClass)

    def test_deterministic(self):
        sql = "SELECT * FROM (INSERT INTO x VALUES (1)) t"
        assert {classify(sql) for _ in range(5)} == {OperationClass.DANGEROUS}


class TestNormalization:

    def test_upper_cases_and_collapses_whitespace(self):
        assert normalize("  select\n\t*   from\r\nusers  ") == "SELECT * FROM USERS"

    def test_keyword_extracted_after_whitespace(self):
        statement = StatementClassifier().analyze("\n\n   insert into t values (1)")
        assert statement.keyword == "INSERT"

    def test_words_use_identifier_boundaries(self):
        statement = StatementClassifier().analyze("SELECT created_at, last_update FROM t")
        assert "CREATE" not in statement.words()
        assert "UPDATE" not in statement.words()
        assert "CREATED_AT" in statement.words()


# ── Embedded Side Effects (SELECT smuggling) ──────────────────────────

class TestEmbeddedSideEffects:

    @pytest.mark.parametrize("sql,clause", [
        ("SELECT * FROM (INSERT INTO x VALUES (1)) t", "INSERT INTO"),
        ("SELECT 1 FROM t WHERE 1 = (DROP TABLE users)", "DROP TABLE"),
        ("SELECT * FROM t; DELETE FROM t", "DELETE FROM"),
        ("SELECT * FROM t WHERE x IN (UPDATE users SET a = 1)", "UPDATE ... SET"),
        ("SELECT 1; TRUNCATE TABLE t", "TRUNCATE TABLE"),
        ("SELECT 1 UNION SELECT 2; CREATE TABLE x (id int)", "CREATE TABLE"),
        ("select 1; alter table t add b int", "ALTER TABLE"),
    ])
    def test_select_with_side_effect_is_dangerous(self, sql, clause):
        statement = StatementClassifier().analyze(sql)
        assert statement.keyword == "SELECT"
        assert statement.operation == OperationClass.DANGEROUS
        assert statement.embedded_clause == clause

    def test_plain_select_has_no_embedded_clause(self):
        statement = StatementClassifier().analyze("SELECT * FROM users WHERE id = 1")
        assert statement.embedded_clause is None
        assert statement.operation == OperationClass.READ_ONLY

    def test_column_names_do_not_trigger_scan(self):
        sql = "SELECT updated_at, created_by, dropped FROM audit"
        assert classify(sql) == OperationClass.READ_ONLY

    def test_scan_only_applies_to_select(self):
        # WITH is not subject to the phrase scan; the policy keyword scan covers it
        statement = StatementClassifier().analyze(
            "WITH d AS (SELECT 1) INSERT INTO t SELECT * FROM d"
        )
        assert statement.operation == OperationClass.READ_ONLY
        assert statement.embedded_clause is None


# ── Statement Counting ────────────────────────────────────────────────

class TestStatementCount:

    @pytest.mark.parametrize("sql,expected", [
        ("SELECT 1", 1),
        ("SELECT 1;", 1),
        ("SELECT 1; SELECT 2", 2),
        ("SELECT 1;; SELECT 2;", 2),
        ("SELECT ';' AS sep", 1),
        ("", 0),
    ])
    def test_count(self, sql, expected):
        assert count_statements(sql) == expected

    def test_analyze_reports_count(self):
        statement = StatementClassifier().analyze("SELECT 1; DROP TABLE t")
        assert statement.statement_count == 2


# ── Tokenizer Hardening Mode ──────────────────────────────────────────

class TestTokenizerMode:

    @pytest.fixture
    def strict(self):
        return StatementClassifier(strict=True)

    def test_leading_comment_does_not_hide_keyword(self, strict):
        assert strict.classify("/* harmless */ DELETE FROM users") == OperationClass.DANGEROUS

    def test_keyword_mode_rejects_leading_comment_as_unknown(self):
        assert classify("/* harmless */ DELETE FROM users") == OperationClass.UNKNOWN

    def test_string_literal_is_not_scanned(self, strict):
        sql = "SELECT * FROM audit WHERE action = 'DROP TABLE users'"
        assert strict.classify(sql) == OperationClass.READ_ONLY
        assert classify(sql) == OperationClass.DANGEROUS

    def test_literals_replaced_in_normalized_text(self, strict):
        statement = strict.analyze("SELECT 'insert into x' AS label")
        assert "INSERT" not in statement.words()

    def test_embedded_clause_still_detected(self, strict):
        assert strict.classify("SELECT * FROM (INSERT INTO x VALUES (1)) t") == (
            OperationClass.DANGEROUS
        )

    def test_strict_flag(self, strict):
        assert strict.strict is True
        assert StatementClassifier().strict is False
