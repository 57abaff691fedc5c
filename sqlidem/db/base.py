"""Connection wrapper and result set cursors."""

import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError

from sqlidem.db.types import (
    NUMERIC_TYPES,
    described_type_name,
    infer_type_name,
    parse_bool,
    parse_date,
    parse_time,
    parse_timestamp,
    to_string,
    type_code,
)
from sqlidem.exceptions import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ColumnRef = Union[int, str]


@dataclass(frozen=True)
class Column:
    """Metadata of one result column."""

    label: str
    type_name: str = "VARCHAR"
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: Optional[bool] = None

    @property
    def type_code(self) -> int:
        return type_code(self.type_name)

    @property
    def is_numeric(self) -> bool:
        """Whether values of this column are right-justified in tables."""
        return self.type_name.upper() in NUMERIC_TYPES

    def describe(self) -> str:
        """Render the column as ``LABEL TYPE(p, s) NOT NULL``."""
        text = f"{self.label} {self.type_name}"
        if self.precision is not None:
            if self.scale:
                text += f"({self.precision}, {self.scale})"
            else:
                text += f"({self.precision})"
        if self.nullable is False:
            text += " NOT NULL"
        return text


class ResultSet(ABC):
    """Forward-only cursor over the rows of a query.

    Columns are addressed by 0-based index or by label. Call :meth:`next`
    to move to the next row before reading values.
    """

    def __init__(self, columns: Sequence[Column]) -> None:
        self.columns: List[Column] = list(columns)
        self._closed = False
        self._was_null = False

    @abstractmethod
    def next(self) -> bool:
        """Advance to the next row.

        Returns:
            False when there are no more rows.
        """
        pass

    @abstractmethod
    def _value(self, index: int) -> Any:
        """Return the raw value at ``index`` in the current row."""
        pass

    @property
    def labels(self) -> List[str]:
        return [column.label for column in self.columns]

    @property
    def was_null(self) -> bool:
        """Whether the last value read was null."""
        return self._was_null

    @property
    def closed(self) -> bool:
        return self._closed

    def column_index(self, column: ColumnRef) -> int:
        """Resolve a column reference to a 0-based index.

        Raises:
            IndexError: If an index is out of range.
            KeyError: If no column has the given label.
        """
        if isinstance(column, int):
            if not 0 <= column < len(self.columns):
                raise IndexError(f"column index {column} out of range")
            return column
        for i, c in enumerate(self.columns):
            if c.label == column:
                return i
        for i, c in enumerate(self.columns):
            if c.label.upper() == column.upper():
                return i
        raise KeyError(f"no column '{column}'")

    def get_object(self, column: ColumnRef) -> Any:
        if self._closed:
            raise RuntimeError("result set is closed")
        value = self._value(self.column_index(column))
        self._was_null = value is None
        return value

    def get_string(self, column: ColumnRef) -> Optional[str]:
        return to_string(self.get_object(column))

    def get_int(self, column: ColumnRef) -> Optional[int]:
        return self._convert(column, int)

    def get_float(self, column: ColumnRef) -> Optional[float]:
        return self._convert(column, float)

    def get_decimal(self, column: ColumnRef) -> Optional[Decimal]:
        return self._convert(column, lambda v: v if isinstance(v, Decimal) else Decimal(str(v)))

    def get_bool(self, column: ColumnRef) -> Optional[bool]:
        return self._convert(column, lambda v: v if isinstance(v, bool) else parse_bool(str(v)))

    def get_date(self, column: ColumnRef) -> Optional[datetime.date]:
        def convert(v):
            if isinstance(v, datetime.datetime):
                return v.date()
            if isinstance(v, datetime.date):
                return v
            return parse_date(str(v))
        return self._convert(column, convert)

    def get_time(self, column: ColumnRef) -> Optional[datetime.time]:
        def convert(v):
            if isinstance(v, datetime.datetime):
                return v.time()
            if isinstance(v, datetime.time):
                return v
            return parse_time(str(v))
        return self._convert(column, convert)

    def get_timestamp(self, column: ColumnRef) -> Optional[datetime.datetime]:
        def convert(v):
            if isinstance(v, datetime.datetime):
                return v
            return parse_timestamp(str(v))
        return self._convert(column, convert)

    def _convert(self, column: ColumnRef, convert: Callable[[Any], T]) -> Optional[T]:
        value = self.get_object(column)
        if value is None:
            return None
        return convert(value)

    def fetch_strings(self) -> List[List[Optional[str]]]:
        """Consume the remaining rows, rendering every value as text."""
        rows = []
        while self.next():
            rows.append([self.get_string(i) for i in range(len(self.columns))])
        return rows

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        while self.next():
            yield tuple(self.get_object(i) for i in range(len(self.columns)))

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "ResultSet":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryResultSet(ResultSet):
    """Result set over rows buffered in memory."""

    def __init__(self, columns: Sequence[Column], rows: Sequence[Sequence[Any]]) -> None:
        super().__init__(columns)
        self._rows = [tuple(row) for row in rows]
        self._position = -1

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def next(self) -> bool:
        if self._closed:
            return False
        if self._position < len(self._rows):
            self._position += 1
        return self._position < len(self._rows)

    def _value(self, index: int) -> Any:
        if not 0 <= self._position < len(self._rows):
            raise RuntimeError("result set is not positioned on a row")
        return self._rows[self._position][index]


def build_columns(
    labels: Sequence[str],
    description: Optional[Sequence[Sequence[Any]]],
    rows: Sequence[Sequence[Any]],
) -> List[Column]:
    """Build column metadata from a DB-API cursor description and row values.

    A ``type_code`` from the known type vocabulary is used as is. Otherwise
    the type name is inferred from the first non-null value of the column,
    and is VARCHAR if there is none.
    """
    columns = []
    for i, label in enumerate(labels):
        entry = description[i] if description and i < len(description) else ()
        precision = entry[4] if len(entry) > 4 and isinstance(entry[4], int) else None
        scale = entry[5] if len(entry) > 5 and isinstance(entry[5], int) else None
        nullable = entry[6] if len(entry) > 6 and isinstance(entry[6], bool) else None
        name = described_type_name(entry[1]) if len(entry) > 1 else None
        if name is None:
            sample = next((row[i] for row in rows if row[i] is not None), None)
            name = infer_type_name(sample) if sample is not None else "VARCHAR"
        columns.append(Column(label, name, precision, scale, nullable))
    return columns


class Connection:
    """A named database connection backed by a SQLAlchemy connection.

    Statements are passed to the driver verbatim. Each statement runs in
    its own transaction.
    """

    EXPLAIN_PREFIXES = {
        "sqlite": "EXPLAIN QUERY PLAN ",
        "postgresql": "EXPLAIN ",
        "mysql": "EXPLAIN ",
        "mariadb": "EXPLAIN ",
        "oracle": "EXPLAIN PLAN FOR ",
    }

    def __init__(
        self,
        name: str,
        connection: SAConnection,
        explain_prefix: Optional[str] = None,
    ) -> None:
        """Initialize the connection.

        Args:
            name: Database name the connection was opened for.
            connection: Open SQLAlchemy connection.
            explain_prefix: Text prepended to a query to obtain its plan.
                Defaults to the dialect's usual EXPLAIN form.
        """
        self.name = name
        self._connection = connection
        dialect = connection.dialect.name
        self.explain_prefix = explain_prefix or self.EXPLAIN_PREFIXES.get(dialect, "EXPLAIN ")

    @property
    def dialect_name(self) -> str:
        return self._connection.dialect.name

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def execute_query(self, sql: str) -> MemoryResultSet:
        """Execute a query and buffer its rows.

        Raises:
            DatabaseError: If execution fails or the statement returns no rows.
        """
        def fetch(result: CursorResult) -> MemoryResultSet:
            if not result.returns_rows:
                raise DatabaseError(
                    "Statement did not return a result set", database=self.name, sql=sql
                )
            description = result.cursor.description if result.cursor is not None else None
            labels = list(result.keys())
            rows = [tuple(row) for row in result.fetchall()]
            return MemoryResultSet(build_columns(labels, description, rows), rows)

        return self._run(sql, fetch)

    def execute_update(self, sql: str) -> int:
        """Execute a data modification statement.

        Returns:
            Number of rows modified.
        """
        def count(result: CursorResult) -> int:
            rowcount = result.rowcount
            if result.returns_rows:
                result.close()
            return max(rowcount, 0)

        return self._run(sql, count)

    def explain(self, sql: str) -> List[str]:
        """Return the plan of a query, one line per plan row."""
        result_set = self.execute_query(self.explain_prefix + sql)
        lines = []
        with result_set:
            while result_set.next():
                text = result_set.get_string(len(result_set.columns) - 1)
                lines.extend((text or "").splitlines() or [""])
        return lines

    def describe(self, sql: str) -> List[Column]:
        """Return the column metadata of a query.

        The query is executed; its rows are only used to infer types.
        """
        with self.execute_query(sql) as result_set:
            return list(result_set.columns)

    def _run(self, sql: str, handler: Callable[[CursorResult], T]) -> T:
        if self._connection.closed:
            raise DatabaseError(f"Connection '{self.name}' is closed", database=self.name, sql=sql)
        logger.debug(f"Executing on '{self.name}': {sql}")
        try:
            result = self._connection.exec_driver_sql(sql)
            value = handler(result)
            self._connection.commit()
            return value
        except SQLAlchemyError as e:
            self._rollback()
            cause = getattr(e, "orig", None) or e
            raise DatabaseError(
                f"Statement failed on '{self.name}': {cause}", database=self.name, sql=sql
            ) from e
        except DatabaseError:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self._connection.rollback()
        except SQLAlchemyError:
            logger.debug(f"Rollback failed on '{self.name}'", exc_info=True)

    def close(self) -> None:
        if not self._connection.closed:
            logger.debug(f"Closing connection '{self.name}'")
            self._connection.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
