"""Mutable state of one script run."""

import io
import logging
from typing import Any, Iterable, Optional, Sequence, TextIO

from sqlidem.db.base import Connection, ResultSet
from sqlidem.db.factories import ConnectionFactory
from sqlidem.exceptions import UnknownDatabaseError
from sqlidem.script.commands import SqlCommand
from sqlidem.script.environment import Environment, lookup, resolve
from sqlidem.script.formats import DEFAULT_FORMAT, FormattedResult, OutputFormat
from sqlidem.script.limits import DEFAULT_STACK_LIMIT, write_stack
from sqlidem.script.properties import Property, PropertyHandler, PropertyStacks

logger = logging.getLogger(__name__)


class ExecutionContext:
    """State shared by the commands of a run.

    Holds the output writer, the current and reference connections, the
    current SQL statement, the execute, skip and echoing flags, and the
    property stacks. At most one result set is open at a time.
    """

    def __init__(
        self,
        writer: TextIO,
        connection_factory: ConnectionFactory,
        env: Environment,
        property_handler: Optional[PropertyHandler] = None,
        stack_limit: int = DEFAULT_STACK_LIMIT,
    ) -> None:
        self.writer = writer
        self.connection_factory = connection_factory
        self.env = env
        self.stack_limit = stack_limit
        self.connection: Optional[Connection] = None
        self.reference_connection: Optional[Connection] = None
        self.sql_command: Optional[SqlCommand] = None
        self.result_set: Optional[ResultSet] = None
        self.execute = True
        self.skip = False
        self.echoing = False
        self.sort = False
        self.properties = PropertyStacks(self._default_value, property_handler)

    def _default_value(self, name: str) -> Any:
        if Property.of(name) is Property.OUTPUTFORMAT:
            return DEFAULT_FORMAT
        return lookup(self.env, name)

    @property
    def output_format(self) -> OutputFormat:
        value = self.properties.get(Property.OUTPUTFORMAT.value)
        return value if isinstance(value, OutputFormat) else DEFAULT_FORMAT

    def resolve(self, variables: Sequence[str]) -> bool:
        """Evaluate a condition path; script properties hide the environment."""
        return resolve(self.properties.get, variables)

    # Output

    def write(self, line: str) -> None:
        self.writer.write(line + "\n")

    def write_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.writer.write(line + "\n")

    echo = write_lines

    def write_stack(self, error: BaseException) -> None:
        write_stack(self.writer, error, self.stack_limit)

    def stack_text(self, error: BaseException) -> str:
        """Return the stack of ``error`` as :meth:`write_stack` writes it."""
        buffer = io.StringIO()
        write_stack(buffer, error, self.stack_limit)
        return buffer.getvalue()

    # Connections

    def use(self, name: str) -> None:
        """Switch to database ``name``, closing the current connections."""
        self.close_connections()
        connection = self.connection_factory.connect(name, False)
        if connection is None:
            raise UnknownDatabaseError(f"Unknown database: {name}", database=name)
        self.connection = connection
        self.reference_connection = self.connection_factory.connect(name, True)
        logger.debug(
            f"Using database '{name}'"
            f"{' with reference' if self.reference_connection is not None else ''}"
        )

    def require_connection(self) -> Connection:
        if self.connection is None:
            raise RuntimeError("no connection")
        return self.connection

    def require_sql(self) -> SqlCommand:
        if self.sql_command is None:
            raise AssertionError("no previous SQL command")
        return self.sql_command

    def format_query(self, sql: SqlCommand, connection: Optional[Connection] = None) -> FormattedResult:
        """Run a query and format its result in the current output format.

        Raises:
            DatabaseError: If the query fails.
        """
        if connection is None:
            connection = self.require_connection()
        self.close_result_set()
        self.result_set = connection.execute_query(sql.sql)
        self.sort = sql.sort
        try:
            return self.output_format.format(
                self.result_set.fetch_strings(), self.result_set.columns, self.sort
            )
        finally:
            self.close_result_set()

    def close_result_set(self) -> None:
        if self.result_set is not None:
            self.result_set.close()
            self.result_set = None

    def close_connections(self) -> None:
        self.close_result_set()
        for connection in (self.connection, self.reference_connection):
            if connection is None:
                continue
            try:
                connection.close()
            except Exception:
                logger.debug(f"Failed to close connection '{connection.name}'", exc_info=True)
        self.connection = None
        self.reference_connection = None

    def close(self) -> None:
        self.close_connections()
        self.writer.flush()
