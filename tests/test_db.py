"""Tests for connections, result sets, value rendering and connection factories."""

import datetime
from decimal import Decimal

import pytest

from sqlidem.config.models import DatabaseConfig
from sqlidem.db.base import Column, MemoryResultSet, build_columns
from sqlidem.db.factories import (
    SimpleConnectionFactory,
    chain,
    empty,
    from_config,
    unsupported,
)
from sqlidem.db.types import (
    described_type_name,
    from_string,
    infer_type_name,
    to_string,
    type_code,
    type_name,
)
from sqlidem.exceptions import DatabaseError, UnknownDatabaseError


class TestTypes:
    """Test type names and value rendering."""

    def test_type_codes(self) -> None:
        assert type_code("INTEGER") == 4
        assert type_code("varchar") == 12
        assert type_code("NO_SUCH_TYPE") == 12
        assert type_name(4) == "INTEGER"
        assert type_name(99999) == "type99999"

    @pytest.mark.parametrize("value, expected", [
        (True, "BOOLEAN"),
        (1, "INTEGER"),
        (1.5, "DOUBLE"),
        (Decimal("1.50"), "DECIMAL"),
        (datetime.datetime(2024, 1, 2, 3, 4, 5), "TIMESTAMP"),
        (datetime.date(2024, 1, 2), "DATE"),
        (datetime.time(3, 4), "TIME"),
        (b"\x01", "VARBINARY"),
        ("x", "VARCHAR"),
    ])
    def test_infer_type_name(self, value, expected) -> None:
        assert infer_type_name(value) == expected

    def test_to_string(self) -> None:
        assert to_string(None) is None
        assert to_string(False) == "FALSE"
        assert to_string(Decimal("300.00")) == "300.00"
        assert to_string(datetime.datetime(1981, 2, 20, 0, 0)) == "1981-02-20 00:00:00"
        assert to_string(datetime.date(1981, 2, 20)) == "1981-02-20"
        assert to_string(b"\xca\xfe") == "cafe"

    def test_from_string(self) -> None:
        assert from_string("14", "INTEGER") == 14
        assert from_string("300.00", "DECIMAL") == Decimal("300.00")
        assert from_string("TRUE", "BOOLEAN") is True
        assert from_string("1981-02-20", "DATE") == datetime.date(1981, 2, 20)
        assert from_string("1981-02-20 10:00:00", "TIMESTAMP") == datetime.datetime(1981, 2, 20, 10)
        assert from_string("cafe", "VARBINARY") == b"\xca\xfe"
        assert from_string("x", "VARCHAR") == "x"
        assert from_string(None, "INTEGER") is None

    def test_from_string_invalid(self) -> None:
        with pytest.raises(ValueError, match="invalid date 'yesterday'"):
            from_string("yesterday", "DATE")
        with pytest.raises(ValueError, match="invalid boolean"):
            from_string("maybe", "BOOLEAN")


class TestResultSet:
    """Test cursor access to buffered rows."""

    @pytest.fixture
    def result_set(self):
        columns = [Column("EMPNO", "INTEGER"), Column("HIREDATE", "DATE"), Column("COMM", "DECIMAL")]
        rows = [
            (7369, datetime.date(1980, 12, 17), None),
            (7499, "1981-02-20", Decimal("300")),
        ]
        return MemoryResultSet(columns, rows)

    def test_getters(self, result_set) -> None:
        assert result_set.next()
        assert result_set.get_int("empno") == 7369
        assert result_set.get_date(1) == datetime.date(1980, 12, 17)
        assert result_set.get_decimal("COMM") is None
        assert result_set.was_null
        assert result_set.next()
        assert result_set.get_string(0) == "7499"
        assert not result_set.was_null
        assert result_set.get_date("HIREDATE") == datetime.date(1981, 2, 20)
        assert result_set.get_float("COMM") == 300.0
        assert not result_set.next()
        assert not result_set.next()

    def test_unknown_column(self, result_set) -> None:
        result_set.next()
        with pytest.raises(KeyError):
            result_set.get_object("SAL")
        with pytest.raises(IndexError):
            result_set.get_object(3)

    def test_not_positioned(self, result_set) -> None:
        with pytest.raises(RuntimeError, match="not positioned"):
            result_set.get_object(0)

    def test_closed(self, result_set) -> None:
        with result_set:
            pass
        assert result_set.closed
        assert not result_set.next()

    def test_fetch_strings_and_iteration(self, result_set) -> None:
        assert result_set.fetch_strings() == [
            ["7369", "1980-12-17", None],
            ["7499", "1981-02-20", "300"],
        ]
        rows = MemoryResultSet([Column("A")], [(1,), (2,)])
        assert list(rows) == [(1,), (2,)]

    def test_labels(self, result_set) -> None:
        assert result_set.labels == ["EMPNO", "HIREDATE", "COMM"]


class TestColumn:

    def test_describe(self) -> None:
        assert Column("ENAME").describe() == "ENAME VARCHAR"
        assert Column("SAL", "DECIMAL", 7, 2, False).describe() == "SAL DECIMAL(7, 2) NOT NULL"
        assert Column("ENAME", "VARCHAR", 10).describe() == "ENAME VARCHAR(10)"

    def test_numeric(self) -> None:
        assert Column("A", "INTEGER").is_numeric
        assert not Column("A", "VARCHAR").is_numeric
        assert Column("A", "INTEGER").type_code == 4

    def test_build_columns_infers_from_first_value(self) -> None:
        columns = build_columns(["A", "B"], None, [(None, "x"), (1, "y")])
        assert [c.type_name for c in columns] == ["INTEGER", "VARCHAR"]
        empty_columns = build_columns(["A"], None, [])
        assert empty_columns[0].type_name == "VARCHAR"

    def test_build_columns_prefers_described_type(self) -> None:
        description = [
            ("A", 4, None, None, None, None, None),
            ("B", "date", None, None, None, None, None),
            ("C", object(), None, None, None, None, None),
            ("D", 99999, None, None, None, None, None),
        ]
        columns = build_columns(["A", "B", "C", "D"], description, [])
        assert [c.type_name for c in columns] == ["INTEGER", "DATE", "VARCHAR", "VARCHAR"]
        columns = build_columns(["A", "B", "C", "D"], description, [("1", "x", 1.5, 2)])
        assert [c.type_name for c in columns] == ["INTEGER", "DATE", "DOUBLE", "INTEGER"]

    @pytest.mark.parametrize("code, expected", [
        (93, "TIMESTAMP"),
        ("Decimal", "DECIMAL"),
        (0, None),
        (True, None),
        (None, None),
        ("text", None),
    ])
    def test_described_type_name(self, code, expected) -> None:
        assert described_type_name(code) == expected


class TestConnection:
    """Test statements against the scott database."""

    @pytest.fixture
    def connection(self, connection_factory):
        connection = connection_factory.connect("scott", False)
        yield connection
        connection.close()

    def test_execute_query(self, connection) -> None:
        with connection.execute_query("select ename, sal from emp where empno = 7839") as rs:
            assert rs.labels == ["ename", "sal"]
            assert [c.type_name for c in rs.columns] == ["VARCHAR", "INTEGER"]
            assert rs.fetch_strings() == [["KING", "5000"]]

    def test_execute_update(self, connection) -> None:
        assert connection.execute_update("update emp set sal = sal + 1 where deptno = 30") == 6
        with connection.execute_query("select sal from emp where empno = 7900") as rs:
            assert rs.next()
            assert rs.get_int(0) == 951

    def test_query_without_rows(self, connection) -> None:
        with pytest.raises(DatabaseError, match="did not return a result set"):
            connection.execute_query("update emp set sal = sal where 1 = 0")

    def test_failed_statement(self, connection) -> None:
        with pytest.raises(DatabaseError, match="Statement failed on 'scott': no such table: nosuch") as info:
            connection.execute_query("select * from nosuch")
        assert info.value.database == "scott"
        assert info.value.sql == "select * from nosuch"
        # the connection stays usable
        assert connection.execute_query("select 1").fetch_strings() == [["1"]]

    def test_explain(self, connection) -> None:
        assert connection.explain_prefix == "EXPLAIN QUERY PLAN "
        lines = connection.explain("select * from emp")
        assert lines and "emp" in lines[0]

    def test_describe(self, connection) -> None:
        columns = connection.describe("select empno, hiredate from emp")
        assert [c.describe() for c in columns] == ["empno INTEGER", "hiredate VARCHAR"]

    def test_closed_connection(self, connection) -> None:
        connection.close()
        assert connection.closed
        with pytest.raises(DatabaseError, match="is closed"):
            connection.execute_query("select 1")


class TestFactories:
    """Test resolving names to connections."""

    def test_simple_factory(self, scott_db) -> None:
        factory = SimpleConnectionFactory("scott", f"sqlite:///{scott_db}")
        try:
            assert factory.connect("other", False) is None
            assert factory.connect("scott", True) is None
            connection = factory.connect("scott", False)
            assert connection.name == "scott"
            connection.close()
        finally:
            factory.close()

    def test_reference_connection(self, scott_db, scott_ref_db) -> None:
        factory = SimpleConnectionFactory(
            "scott", f"sqlite:///{scott_db}", reference_url=f"sqlite:///{scott_ref_db}"
        )
        with factory.connect("scott", True) as connection:
            assert connection.execute_query("select count(*) from dept").fetch_strings() == [["4"]]
        factory.close()

    def test_populate_runs_once(self, tmp_path) -> None:
        calls = []

        def verify(connection):
            calls.append("verify")
            return False

        def populate(connection):
            calls.append("populate")
            connection.execute_update("create table t (x integer)")

        factory = SimpleConnectionFactory(
            "db", f"sqlite:///{tmp_path / 'new.db'}", verify=verify, populate=populate
        )
        factory.connect("db", False).close()
        factory.connect("db", False).close()
        factory.close()
        assert calls == ["verify", "populate"]

    def test_populate_skipped_when_verified(self, scott_db) -> None:
        calls = []
        factory = SimpleConnectionFactory(
            "scott", f"sqlite:///{scott_db}",
            verify=lambda c: True, populate=lambda c: calls.append("populate"),
        )
        factory.connect("scott", False).close()
        factory.close()
        assert calls == []

    def test_populate_failure(self, tmp_path) -> None:
        def populate(connection):
            raise RuntimeError("cannot populate")

        factory = SimpleConnectionFactory("db", f"sqlite:///{tmp_path / 'x.db'}", populate=populate)
        with pytest.raises(RuntimeError, match="cannot populate"):
            factory.connect("db", False)
        factory.close()

    def test_unsupported(self) -> None:
        factory = unsupported()
        assert factory.connect("x", True) is None
        with pytest.raises(UnknownDatabaseError, match="Unknown database: x"):
            factory.connect("x", False)

    def test_chain(self, scott_db) -> None:
        factory = chain(empty(), SimpleConnectionFactory("scott", f"sqlite:///{scott_db}"))
        assert factory.connect("other", False) is None
        with factory.connect("scott", False) as connection:
            assert connection.name == "scott"
        factory.close()

    def test_from_config(self, scott_db) -> None:
        factory = from_config({"scott": DatabaseConfig(url=f"sqlite:///{scott_db}")})
        with factory.connect("scott", False) as connection:
            assert connection.execute_query("select count(*) from emp").fetch_strings() == [["14"]]
        factory.close()

    def test_bad_url(self) -> None:
        factory = SimpleConnectionFactory("db", "nosuchdialect://host/db")
        with pytest.raises(DatabaseError, match="Failed to connect to 'db'"):
            factory.connect("db", False)
