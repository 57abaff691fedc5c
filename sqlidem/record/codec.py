"""Text serialization of result sets.

A serialized result set is a header line of ``label:TYPE`` items followed by
one line per row. Items and fields are separated by commas. A null is an
empty field and an empty string is ``''``. A header item or value containing
a comma, or starting with a quote, ``#`` or ``!``, is enclosed in single
quotes, with embedded quotes doubled::

    EMPNO:INTEGER,ENAME:VARCHAR,'NVL(COMM, 0):DECIMAL'
    7369,SMITH,0
    7499,'ALLEN, JR.',300.00
"""

from typing import Any, List, Optional, Sequence

from sqlidem.db.base import Column, MemoryResultSet, ResultSet
from sqlidem.db.types import from_string
from sqlidem.exceptions import RecordingError

_QUOTED_PREFIXES = ("'", "#", "!")


def quote(value: Optional[str]) -> str:
    """Encode one field."""
    if value is None:
        return ""
    if "\n" in value or "\r" in value:
        raise RecordingError(f"cannot record value containing a line break: {value!r}")
    if value == "" or "," in value or value.startswith(_QUOTED_PREFIXES):
        return "'" + value.replace("'", "''") + "'"
    return value


def write(result_set: ResultSet) -> str:
    """Serialize the remaining rows of a result set.

    Returns:
        The header and rows, each followed by a newline.
    """
    lines = [",".join(quote(f"{c.label}:{c.type_name}") for c in result_set.columns)]
    count = len(result_set.columns)
    while result_set.next():
        lines.append(",".join(quote(result_set.get_string(i)) for i in range(count)))
    return "".join(line + "\n" for line in lines)


def parse_header(line: str) -> List[Column]:
    """Decode a header line; items are quoted like values."""
    if line == "":
        return []
    columns = []
    for item in parse_line(line):
        item = item or ""
        label, sep, type_name = item.rpartition(":")
        if not sep:
            label, type_name = type_name, "VARCHAR"
        columns.append(Column(label, type_name or "VARCHAR"))
    return columns


def parse_line(line: str, count: Optional[int] = None) -> List[Optional[str]]:
    """Decode the fields of one row.

    Args:
        line: Serialized row.
        count: Number of columns; missing trailing fields are null. If
            None, every field in the line is returned.

    Raises:
        RecordingError: If a quoted field is malformed.
    """
    fields: List[Optional[str]] = [None] * (count or 0)
    pos = 0
    i = 0
    while (count is None or i < count) and pos <= len(line):
        if count is None:
            fields.append(None)
        if pos < len(line) and line[pos] == "'":
            pos += 1
            parts = []
            while True:
                end = line.find("'", pos)
                if end < 0:
                    raise RecordingError(f"unterminated quoted string in line [{line}]")
                parts.append(line[pos:end])
                if end + 1 < len(line) and line[end + 1] == "'":
                    parts.append("'")
                    pos = end + 2
                    if pos >= len(line):
                        raise RecordingError("missing \"'\" following escaped \"'\"")
                    continue
                pos = end + 1
                break
            fields[i] = "".join(parts)
            if pos == len(line):
                pos += 1
            elif line[pos] == ",":
                pos += 1
            else:
                raise RecordingError("quoted string must be followed by comma or line ending")
        else:
            end = line.find(",", pos)
            if end < 0:
                end = len(line)
            value = line[pos:end]
            fields[i] = value if value else None
            pos = end + 1
        i += 1
    return fields


class RecordedResultSet(MemoryResultSet):
    """Result set read back from its serialized form.

    Values are kept as text; typed getters convert according to the
    recorded column type.
    """

    def __init__(self, columns: Sequence[Column], rows: Sequence[Sequence[Optional[str]]]) -> None:
        super().__init__(columns, rows)

    def _text(self, index: int) -> Optional[str]:
        return super()._value(index)

    def _value(self, index: int) -> Any:
        return from_string(self._text(index), self.columns[index].type_name)

    def get_string(self, column):
        if self._closed:
            raise RuntimeError("result set is closed")
        value = self._text(self.column_index(column))
        self._was_null = value is None
        return value


def read(text: str) -> RecordedResultSet:
    """Deserialize a result set written by :func:`write`."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if not lines:
        raise RecordingError("recorded result has no header")
    columns = parse_header(lines[0])
    rows = [parse_line(line, len(columns)) for line in lines[1:]]
    return RecordedResultSet(columns, rows)
