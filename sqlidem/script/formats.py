"""Output formats for query results.

A format turns rows of nullable strings into three groups of lines:
header, body and footer. Reconciliation with expected output treats the
header and footer as fixed and the body as a pool of rows.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlidem.db.base import Column

Row = Sequence[Optional[str]]


@dataclass
class FormattedResult:
    """Formatted lines of one result."""

    header: List[str] = field(default_factory=list)
    body: List[str] = field(default_factory=list)
    footer: List[str] = field(default_factory=list)

    @property
    def lines(self) -> List[str]:
        return self.header + self.body + self.footer

    def text(self) -> str:
        return "".join(line + "\n" for line in self.lines)


class OutputFormat(ABC):
    """Base class for output formats."""

    name: str = ""

    @abstractmethod
    def format(self, rows: Sequence[Row], columns: Sequence[Column], sort: bool) -> FormattedResult:
        """Format rows.

        Args:
            rows: Rows of rendered values; None is null.
            columns: Column metadata; labels and numeric-ness are used.
            sort: Whether the row order is not deterministic, in which case
                rows are sorted so that output is stable.

        Returns:
            Header, body and footer lines.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def __str__(self) -> str:
        return self.name


def sort_rows(rows: Sequence[Row]) -> List[Row]:
    """Sort rows field by field; nulls sort after every value."""
    return sorted(rows, key=lambda row: [(1, "") if v is None else (0, v) for v in row])


def column_widths(rows: Sequence[Row], columns: Sequence[Column]) -> List[int]:
    widths = [len(column.label) for column in columns]
    for row in rows:
        for i, value in enumerate(row):
            if value is not None:
                widths[i] = max(widths[i], len(value))
    return widths


def pad(value: Optional[str], width: int, right: bool) -> str:
    text = "" if value is None else value
    if right:
        return text.rjust(width)
    return text.ljust(width)


class CsvFormat(OutputFormat):
    """Comma separated values; nulls appear as ``null``."""

    name = "csv"

    def format(self, rows, columns, sort):
        body = [", ".join("null" if v is None else v for v in row) for row in rows]
        if sort:
            body.sort()
        return FormattedResult([", ".join(c.label for c in columns)], body, [])


class MysqlFormat(OutputFormat):
    """Boxed table, as printed by the mysql command line client.

    ::

        +-------+--------+
        | ENAME | DEPTNO |
        +-------+--------+
        | SMITH |     20 |
        +-------+--------+
        (1 row)
    """

    name = "mysql"

    def format(self, rows, columns, sort):
        if sort:
            rows = sort_rows(rows)
        widths = column_widths(rows, columns)
        border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

        def line(values, aligned):
            cells = [
                pad(v, w, aligned and c.is_numeric)
                for v, w, c in zip(values, widths, columns)
            ]
            return "| " + " | ".join(cells) + " |"

        header = [border, line([c.label for c in columns], False), border]
        body = [line(row, True) for row in rows]
        count = len(rows)
        footer = [border, "(1 row)" if count == 1 else f"({count} rows)", ""]
        return FormattedResult(header, body, footer)


class PsqlFormat(OutputFormat):
    """Table without outer border, as printed by psql.

    ::

         ename | deptno
        -------+--------
         SMITH |     20
        (1 row)
    """

    name = "psql"

    def format(self, rows, columns, sort):
        if sort:
            rows = sort_rows(rows)
        widths = column_widths(rows, columns)
        last = len(columns) - 1

        def line(values, aligned):
            parts = []
            for i, (v, w, c) in enumerate(zip(values, widths, columns)):
                right = aligned and c.is_numeric
                if i == last and not right:
                    parts.append("" if v is None else v)
                else:
                    parts.append(pad(v, w, right))
            return " " + " | ".join(parts)

        header = [line([c.label for c in columns], False), "+".join("-" * (w + 2) for w in widths)]
        body = [line(row, True) for row in rows]
        count = len(rows)
        footer = ["(1 row)" if count == 1 else f"({count} rows)", ""]
        return FormattedResult(header, body, footer)


class OracleFormat(OutputFormat):
    """Column listing, as printed by SQL*Plus.

    ::

        ENAME      DEPTNO
        ---------- ------
        SMITH          20

    The ``N rows selected.`` line appears only from six rows on.
    """

    name = "oracle"

    ROW_COUNT_THRESHOLD = 6

    def format(self, rows, columns, sort):
        count = len(rows)
        if count == 0:
            return FormattedResult(["", "no rows selected", ""], [], [])
        if sort:
            rows = sort_rows(rows)
        widths = column_widths(rows, columns)

        def line(values, aligned):
            cells = [
                pad(v, w, aligned and c.is_numeric)
                for v, w, c in zip(values, widths, columns)
            ]
            return " ".join(cells).rstrip()

        header = [
            line([c.label for c in columns], False),
            " ".join("-" * w for w in widths),
        ]
        body = [line(row, True) for row in rows]
        footer = [""]
        if count >= self.ROW_COUNT_THRESHOLD:
            footer += [f"{count} rows selected.", ""]
        return FormattedResult(header, body, footer)


OUTPUT_FORMATS: Dict[str, OutputFormat] = {
    f.name: f for f in (CsvFormat(), MysqlFormat(), PsqlFormat(), OracleFormat())
}

DEFAULT_FORMAT = OUTPUT_FORMATS["csv"]


def output_format(name: str) -> OutputFormat:
    """Look up a format by name, ignoring case.

    Raises:
        ValueError: If there is no such format.
    """
    try:
        return OUTPUT_FORMATS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown output format '{name}'; expected one of {', '.join(OUTPUT_FORMATS)}"
        ) from None
