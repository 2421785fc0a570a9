from pathlib import Path

from src.outreach_ops.outreach_ops.database.bootstrap import iter_sql_statements

SCHEMA = Path(__file__).resolve().parents[2] / "database" / "schema.sql"


def test_semicolons_inside_quotes_do_not_split():
    sql = "INSERT INTO t VALUES ('a;b');\n-- comment; here\nINSERT INTO t VALUES (\"c;d\");"

    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO t VALUES ('a;b')",
        'INSERT INTO t VALUES ("c;d")',
    ]


def test_trailing_statement_without_semicolon():
    assert list(iter_sql_statements("SELECT 1; SELECT 2")) == ["SELECT 1", "SELECT 2"]


def test_schema_triggers_stay_whole():
    statements = list(iter_sql_statements(SCHEMA.read_text(encoding="utf-8")))

    triggers = [s for s in statements if s.startswith("CREATE TRIGGER")]
    assert len(triggers) == 2
    assert all("SIGNAL SQLSTATE '45000'" in t for t in triggers)
