import pytest

from sqlagent.policy.sql_policy import (
    OperationType,
    SafetyContext,
    SafetyLevel,
    SafetyValidator,
    classify_operation,
)

ALL_LEVELS = [SafetyLevel.READ_ONLY, SafetyLevel.BALANCED, SafetyLevel.PERMISSIVE]


@pytest.mark.parametrize(
    "sql,op",
    [
        ("  select 1", OperationType.READ),
        ("WITH x AS (SELECT 1) SELECT * FROM x", OperationType.READ),
        ("INSERT INTO t VALUES (1)", OperationType.INSERT),
        ("update t set a = 1", OperationType.UPDATE),
        ("DELETE FROM t WHERE id = 1", OperationType.DELETE),
        ("ALTER TABLE t ADD c INT", OperationType.ALTER),
        ("CREATE TABLE t (id INT)", OperationType.CREATE),
        ("DROP TABLE t", OperationType.DROP),
        ("TRUNCATE TABLE t", OperationType.TRUNCATE),
        ("REVOKE SELECT ON t FROM bob", OperationType.GRANT),
        ("VACUUM", OperationType.MAINTENANCE),
        ("BEGIN", OperationType.TRANSACTION),
        ("MERGE INTO t USING s ON 1=1", OperationType.OTHER),
        ("", OperationType.OTHER),
    ],
)
def test_classify_by_leading_keyword(sql, op):
    assert classify_operation(sql) == op


@pytest.mark.parametrize("level", ALL_LEVELS)
def test_blacklist_vetoes_at_every_level(level):
    v = SafetyValidator()
    res = v.validate("DROP TABLE users", SafetyContext(level=level))
    assert not res.is_allowed
    assert "DROP" in res.error
    assert res.details[-1].kind == "blacklist"


def test_blacklist_returns_before_pii_scan():
    v = SafetyValidator()
    res = v.validate("DELETE FROM users WHERE email = 'a@b.com'", SafetyContext(level=SafetyLevel.PERMISSIVE))
    assert not res.is_allowed
    assert res.warnings == []


def test_blacklist_matches_after_statement_separator():
    v = SafetyValidator()
    res = v.validate("SELECT 1; DROP TABLE users", SafetyContext(level=SafetyLevel.PERMISSIVE))
    assert not res.is_allowed


def test_read_only_context_rejects_mutations():
    v = SafetyValidator()
    ctx = SafetyContext(level=SafetyLevel.PERMISSIVE, read_only=True)
    res = v.validate("INSERT INTO t VALUES (1)", ctx)
    assert not res.is_allowed
    assert res.error == "Mutations not allowed in read-only mode"
    assert v.validate("SELECT * FROM t", ctx).is_allowed


def test_read_only_level_blocks_dml():
    v = SafetyValidator()
    res = v.validate("UPDATE t SET a = 1", SafetyContext(level=SafetyLevel.READ_ONLY))
    assert not res.is_allowed
    assert res.operation == OperationType.UPDATE


def test_balanced_allows_dml_with_confirmation_and_blocks_ddl():
    v = SafetyValidator()
    ctx = SafetyContext(level=SafetyLevel.BALANCED)
    ins = v.validate("INSERT INTO t VALUES (1)", ctx)
    assert ins.is_allowed and ins.requires_confirmation
    assert not v.validate("CREATE TABLE t (id INT)", ctx).is_allowed


def test_permissive_allows_ddl_with_confirmation_and_dml_without():
    v = SafetyValidator()
    ctx = SafetyContext(level=SafetyLevel.PERMISSIVE)
    ddl = v.validate("ALTER TABLE t ADD c INT", ctx)
    assert ddl.is_allowed and ddl.requires_confirmation
    dml = v.validate("UPDATE t SET a = 1", ctx)
    assert dml.is_allowed and not dml.requires_confirmation


def test_grant_never_allowed():
    # GRANT is also blacklisted; a custom table without it still hits the level policy.
    from sqlagent.policy.patterns import SafetyPatterns

    v = SafetyValidator(patterns=SafetyPatterns.from_sources((), ()))
    res = v.validate("GRANT SELECT ON t TO bob", SafetyContext(level=SafetyLevel.PERMISSIVE))
    assert not res.is_allowed
    assert "never allowed" in res.error


def test_maintenance_requires_opt_in():
    ctx = SafetyContext(level=SafetyLevel.PERMISSIVE)
    assert not SafetyValidator().validate("VACUUM", ctx).is_allowed
    assert SafetyValidator(allow_maintenance=True).validate("VACUUM", ctx).is_allowed


def test_transaction_and_other_pass_through():
    v = SafetyValidator()
    ctx = SafetyContext(level=SafetyLevel.READ_ONLY)
    assert v.validate("COMMIT", ctx).is_allowed
    assert v.validate("PRAGMA foreign_keys", ctx).is_allowed


def test_pii_is_a_warning_only():
    v = SafetyValidator()
    res = v.validate("SELECT * FROM users WHERE ssn = '123-45-6789'", SafetyContext())
    assert res.is_allowed
    assert any("SSN" in w for w in res.warnings)
    assert [d.kind for d in res.details] == ["pii"]


def test_empty_and_overlong_sql_rejected():
    v = SafetyValidator(max_query_length=20)
    assert v.validate("   ", SafetyContext()).error == "Empty SQL"
    res = v.validate("SELECT * FROM a_very_long_table_name", SafetyContext())
    assert not res.is_allowed
    assert res.details[-1].kind == "length"


def test_multi_statement_warns():
    v = SafetyValidator()
    res = v.validate("SELECT 1; SELECT 2;", SafetyContext())
    assert res.is_allowed
    assert any(d.kind == "multi_statement" for d in res.details)


def test_is_mutation():
    v = SafetyValidator()
    assert v.is_mutation("insert into t values (1)")
    assert v.is_mutation("CREATE TABLE t (id INT)")
    assert not v.is_mutation("SELECT 1")


def test_safety_level_order_and_parse():
    assert SafetyLevel.READ_ONLY < SafetyLevel.BALANCED < SafetyLevel.PERMISSIVE
    assert SafetyLevel.parse("Read-Only") == SafetyLevel.READ_ONLY
    assert SafetyLevel.parse("permissive") == SafetyLevel.PERMISSIVE
    with pytest.raises(ValueError):
        SafetyLevel.parse("yolo")


@pytest.mark.parametrize(
    "sql,op",
    [
        ("/* x */ DROP TABLE users", OperationType.DROP),
        ("-- hi\nDROP TABLE users", OperationType.DROP),
        ("/**/DELETE FROM users", OperationType.DELETE),
        ("-- a\n  /* b\n c */ insert into t values (1)", OperationType.INSERT),
        ("/* outer /* inner */ still comment */ UPDATE t SET a = 1", OperationType.UPDATE),
        ("/* unterminated DROP TABLE users", OperationType.OTHER),
    ],
)
def test_classify_skips_leading_comments(sql, op):
    assert classify_operation(sql) == op


@pytest.mark.parametrize(
    "sql",
    ["/* x */ DROP TABLE users", "-- hi\nDROP TABLE users", "/**/DELETE FROM users", "SELECT 1; /* c */ DELETE FROM t"],
)
@pytest.mark.parametrize("level", ALL_LEVELS)
def test_comment_prefixed_destructive_sql_is_blacklisted(sql, level):
    res = SafetyValidator().validate(sql, SafetyContext(level=level))
    assert not res.is_allowed
    assert res.details[-1].kind == "blacklist"


def test_comment_prefixed_insert_blocked_at_read_only():
    res = SafetyValidator().validate("/* x */ INSERT INTO t VALUES (1)", SafetyContext(level=SafetyLevel.READ_ONLY))
    assert not res.is_allowed
    assert res.operation == OperationType.INSERT
    assert res.details[-1].kind == "policy"


def test_comment_only_sql_is_empty():
    v = SafetyValidator()
    assert v.validate("-- nothing here", SafetyContext()).error == "Empty SQL"
    assert v.validate("/* DROP TABLE users", SafetyContext()).error == "Empty SQL"


def test_semicolon_inside_literal_still_counts_as_separator():
    res = SafetyValidator().validate("SELECT 'a; DELETE x'", SafetyContext(level=SafetyLevel.PERMISSIVE))
    assert not res.is_allowed
    assert res.details[-1].kind == "blacklist"
