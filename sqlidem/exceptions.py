"""Core exceptions for sqlidem."""

from typing import Any, Dict, Optional


class SQLIdemError(Exception):
    """Base exception for all sqlidem errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SQLIdemError):
    """Raised when there's an error in configuration parsing or validation."""
    pass


class DatabaseError(SQLIdemError):
    """Raised when there's an error connecting to or querying a database."""

    def __init__(
        self,
        message: str,
        database: Optional[str] = None,
        sql: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.database = database
        self.sql = sql


class UnknownDatabaseError(DatabaseError):
    """Raised when no connection factory knows a database name."""
    pass


class ParseError(SQLIdemError):
    """Raised when a script cannot be parsed. Parse errors abort the run."""

    def __init__(
        self,
        message: str,
        line: Optional[str] = None,
        line_number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.line = line
        self.line_number = line_number

    def __str__(self) -> str:
        if self.line_number is None:
            return self.message
        return f"{self.message} (line {self.line_number})"


class VerificationError(SQLIdemError):
    """Raised when a query and its reference query disagree."""
    pass


class NoReferenceConnectionError(VerificationError):
    """Raised when verification is requested without a reference connection."""
    pass


class RecordingError(SQLIdemError):
    """Raised when a recording cannot be read, parsed or queried."""
    pass


class RecorderStateError(RecordingError):
    """Raised when a recorder is used in a state that its mode does not allow."""
    pass
