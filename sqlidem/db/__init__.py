"""Database connectivity for sqlidem."""

from sqlidem.db.base import Column, Connection, MemoryResultSet, ResultSet
from sqlidem.db.factories import (
    ChainingConnectionFactory,
    ConnectionFactory,
    SimpleConnectionFactory,
    UnsupportedConnectionFactory,
    chain,
    empty,
    simple,
    unsupported,
)

__all__ = [
    "Column",
    "Connection",
    "MemoryResultSet",
    "ResultSet",
    "ConnectionFactory",
    "SimpleConnectionFactory",
    "ChainingConnectionFactory",
    "UnsupportedConnectionFactory",
    "simple",
    "chain",
    "unsupported",
    "empty",
]
