"""SQL type names, value rendering and value parsing.

Type names follow the JDBC ``java.sql.Types`` vocabulary so that recordings
and ``!type`` output read the same regardless of the driver that produced
them.
"""

import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

# Name to java.sql.Types code.
TYPE_CODES: Dict[str, int] = {
    "ARRAY": 2003,
    "BIGINT": -5,
    "BINARY": -2,
    "BIT": -7,
    "BLOB": 2004,
    "BOOLEAN": 16,
    "CHAR": 1,
    "CLOB": 2005,
    "DATALINK": 70,
    "DATE": 91,
    "DECIMAL": 3,
    "DISTINCT": 2001,
    "DOUBLE": 8,
    "FLOAT": 6,
    "INTEGER": 4,
    "JAVA_OBJECT": 2000,
    "LONGNVARCHAR": -16,
    "LONGVARBINARY": -4,
    "LONGVARCHAR": -1,
    "NCHAR": -15,
    "NCLOB": 2011,
    "NULL": 0,
    "NUMERIC": 2,
    "NVARCHAR": -9,
    "OTHER": 1111,
    "REAL": 7,
    "REF": 2006,
    "REF_CURSOR": 2012,
    "ROWID": -8,
    "SMALLINT": 5,
    "SQLXML": 2009,
    "STRUCT": 2002,
    "TIME": 92,
    "TIME_WITH_TIMEZONE": 2013,
    "TIMESTAMP": 93,
    "TIMESTAMP_WITH_TIMEZONE": 2014,
    "TINYINT": -6,
    "VARBINARY": -3,
    "VARCHAR": 12,
}

TYPE_NAMES: Dict[int, str] = {code: name for name, code in TYPE_CODES.items()}

# Types whose values are right-justified in tabular output.
NUMERIC_TYPES = frozenset({
    "TINYINT", "SMALLINT", "INTEGER", "BIGINT",
    "FLOAT", "REAL", "DOUBLE", "NUMERIC", "DECIMAL",
})

INTEGER_TYPES = frozenset({"TINYINT", "SMALLINT", "INTEGER", "BIGINT"})
FLOAT_TYPES = frozenset({"FLOAT", "REAL", "DOUBLE"})
DECIMAL_TYPES = frozenset({"NUMERIC", "DECIMAL"})
BOOLEAN_TYPES = frozenset({"BOOLEAN", "BIT"})
BINARY_TYPES = frozenset({"BINARY", "VARBINARY", "LONGVARBINARY", "BLOB"})
TIMESTAMP_TYPES = frozenset({"TIMESTAMP", "TIMESTAMP_WITH_TIMEZONE"})
TIME_TYPES = frozenset({"TIME", "TIME_WITH_TIMEZONE"})


def type_code(type_name: str) -> int:
    """Return the type code for a name; unknown names map to VARCHAR."""
    return TYPE_CODES.get(type_name.upper(), TYPE_CODES["VARCHAR"])


def type_name(code: int) -> str:
    """Return the type name for a code; unknown codes render as ``typeN``."""
    return TYPE_NAMES.get(code, f"type{code}")


def described_type_name(code: Any) -> Optional[str]:
    """Return the type name for a DB-API ``type_code``, or None if it is not one we know.

    Drivers that report a type code or name from the type vocabulary above
    are trusted; anything else (None, driver specific objects) is not.
    """
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        name = TYPE_NAMES.get(code)
    elif isinstance(code, str):
        name = code.upper() if code.upper() in TYPE_CODES else None
    else:
        return None
    return None if name == "NULL" else name


def infer_type_name(value: Any) -> str:
    """Infer a type name from a Python value returned by a driver.

    Args:
        value: A non-null column value.

    Returns:
        JDBC style type name.
    """
    # bool before int, datetime before date: subclass order matters
    if isinstance(value, bool):
        return "BOOLEAN"
    if isinstance(value, int):
        return "INTEGER"
    if isinstance(value, float):
        return "DOUBLE"
    if isinstance(value, Decimal):
        return "DECIMAL"
    if isinstance(value, datetime.datetime):
        return "TIMESTAMP"
    if isinstance(value, datetime.date):
        return "DATE"
    if isinstance(value, datetime.time):
        return "TIME"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "VARBINARY"
    return "VARCHAR"


def to_string(value: Any) -> Optional[str]:
    """Render a column value the way it appears in script output."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def from_string(text: Optional[str], type_name: str) -> Any:
    """Convert rendered text back into a Python value of the given type.

    Args:
        text: Text produced by :func:`to_string`, or None.
        type_name: JDBC style type name of the column.

    Returns:
        The typed value, or the text itself for character types.

    Raises:
        ValueError: If the text is not a valid literal of the type.
    """
    if text is None:
        return None
    name = type_name.upper()
    if name in INTEGER_TYPES:
        return int(text)
    if name in FLOAT_TYPES:
        return float(text)
    if name in DECIMAL_TYPES:
        return Decimal(text)
    if name in BOOLEAN_TYPES:
        return parse_bool(text)
    if name == "DATE":
        return parse_date(text)
    if name in TIME_TYPES:
        return parse_time(text)
    if name in TIMESTAMP_TYPES:
        return parse_timestamp(text)
    if name in BINARY_TYPES:
        return bytes.fromhex(text)
    return text


def parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("true", "t", "1"):
        return True
    if lowered in ("false", "f", "0"):
        return False
    raise ValueError(f"invalid boolean '{text}'")


def parse_date(text: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"invalid date '{text}'") from e


def parse_time(text: str) -> datetime.time:
    try:
        return datetime.time.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"invalid time '{text}'") from e


def parse_timestamp(text: str) -> datetime.datetime:
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"invalid timestamp '{text}'") from e
