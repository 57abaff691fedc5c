"""Commands parsed from a script.

Every command keeps the exact lines it was parsed from. Executing a
command writes its output, if any, and then echoes its lines; a disabled
command writes the expected output it was parsed with instead of running,
so that the script text passes through unchanged.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Tuple

from sqlidem.exceptions import DatabaseError, NoReferenceConnectionError, VerificationError
from sqlidem.script.properties import Property, render_value
from sqlidem.script.reconcile import reconcile

if TYPE_CHECKING:
    from sqlidem.script.context import ExecutionContext

logger = logging.getLogger(__name__)

Lines = Tuple[str, ...]


class Command(ABC):
    """A unit of script execution."""

    @abstractmethod
    def describe(self, context: "ExecutionContext") -> str:
        """Describe the command in error messages."""
        pass

    @abstractmethod
    def execute(self, context: "ExecutionContext", enabled: bool) -> None:
        """Execute the command.

        Args:
            context: State of the run.
            enabled: Whether to run the command or only echo it.
        """
        pass


@dataclass(frozen=True)
class SimpleCommand(Command):
    """Base class for commands parsed from one group of lines.

    Custom commands returned by a command handler usually extend this.
    """

    lines: Lines

    def describe(self, context):
        return type(self).__name__

    def execute(self, context, enabled):
        context.echo(self.lines)


@dataclass(frozen=True)
class CommentCommand(SimpleCommand):
    pass


@dataclass(frozen=True)
class UseCommand(SimpleCommand):
    name: str

    def describe(self, context):
        return f"UseCommand [name: {self.name}]"

    def execute(self, context, enabled):
        if enabled:
            context.use(self.name)
        context.echo(self.lines)


@dataclass(frozen=True)
class SqlCommand(SimpleCommand):
    """A SQL statement; the subject of the result directives that follow it."""

    sql: str
    sort: bool

    def describe(self, context):
        return f"SqlCommand [sql: {self.sql}, sort: {str(self.sort).lower()}]"

    def execute(self, context, enabled):
        context.sql_command = self
        context.echo(self.lines)


@dataclass(frozen=True)
class OutputCommand(SimpleCommand):
    """A command that produces output, parsed with the output expected of it."""

    content: Lines

    def execute(self, context, enabled):
        if enabled:
            self.run(context)
        else:
            context.echo(self.content)
        context.echo(self.lines)

    def run(self, context: "ExecutionContext") -> None:
        pass

    def _describe_sql(self, name: str, context: "ExecutionContext") -> str:
        sql = context.sql_command.sql if context.sql_command is not None else None
        return f"{name} [sql: {sql}]"


class CheckMode(Enum):
    """How a query's outcome is checked."""
    OK = "Ok"
    VERIFY = "Verify"
    ERROR = "Error"
    UPDATE = "Update"


def squash(text: str) -> str:
    """Normalize error text for comparison.

    Line endings become ``\\n``, each line is stripped, runs of blanks
    become one space, and the whole text is stripped.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [re.sub(r"[ \t]+", " ", line.strip()) for line in text.split("\n")]
    return "\n".join(lines).strip()


@dataclass(frozen=True)
class CheckResultCommand(OutputCommand):
    """Runs the current SQL statement and checks its outcome.

    ``OK`` writes the result, reconciled with the expected rows.
    ``ERROR`` expects the statement to fail with an error containing the
    expected text. ``UPDATE`` writes the number of rows modified.
    ``VERIFY`` compares the result with the reference database's result
    and writes nothing.
    """

    mode: CheckMode

    def describe(self, context):
        return self._describe_sql(f"{self.mode.value}Command", context)

    def run(self, context):
        sql = context.require_sql()
        if self.mode is CheckMode.OK:
            self._ok(context, sql)
        elif self.mode is CheckMode.ERROR:
            self._error(context, sql)
        elif self.mode is CheckMode.UPDATE:
            self._update(context, sql)
        else:
            self._verify(context, sql)

    def _ok(self, context, sql):
        try:
            result = context.format_query(sql)
        except DatabaseError as e:
            context.write_stack(e)
            return
        context.write_lines(reconcile(self.content, result, sql.sort))

    def _error(self, context, sql):
        try:
            context.format_query(sql)
        except DatabaseError as e:
            if self.content:
                actual = squash(context.stack_text(e))
                expected = squash("\n".join(self.content))
                if expected in actual:
                    context.write_lines(self.content)
                    return
            context.write_stack(e)
            return
        context.write("Expected error, but SQL command did not give one")

    def _update(self, context, sql):
        connection = context.require_connection()
        try:
            count = connection.execute_update(sql.sql)
        except DatabaseError as e:
            context.write_stack(e)
            return
        context.write("(1 row modified)" if count == 1 else f"({count} rows modified)")
        context.write("")

    def _verify(self, context, sql):
        connection = context.require_connection()
        if context.reference_connection is None:
            raise NoReferenceConnectionError("no reference connection")
        expected = context.format_query(sql, context.reference_connection)
        actual = context.format_query(sql, connection)
        if expected.lines != actual.lines:
            raise VerificationError(
                "Reference query returned different results.\n"
                f"expected:\n{expected.text()}actual:\n{actual.text()}"
            )


@dataclass(frozen=True)
class ExplainCommand(OutputCommand):
    """Writes the plan of the current SQL statement."""

    def describe(self, context):
        return self._describe_sql("ExplainCommand", context)

    def run(self, context):
        sql = context.require_sql()
        lines = context.require_connection().explain(sql.sql)
        if not lines:
            raise AssertionError("explain returned 0 records")
        context.write_lines(lines)


@dataclass(frozen=True)
class TypeCommand(OutputCommand):
    """Writes the column names and types of the current SQL statement."""

    def describe(self, context):
        return self._describe_sql("TypeCommand", context)

    def run(self, context):
        sql = context.require_sql()
        for column in context.require_connection().describe(sql.sql):
            context.write(column.describe())


@dataclass(frozen=True)
class SetCommand(SimpleCommand):
    property: Property
    name: str
    value: Any

    def describe(self, context):
        return f"SetCommand [{self.name}: {render_value(self.value)}]"

    def execute(self, context, enabled):
        if enabled:
            context.properties.set(self.name, self.value)
        context.echo(self.lines)


@dataclass(frozen=True)
class PushCommand(SimpleCommand):
    property: Property
    name: str
    value: Any

    def describe(self, context):
        return f"PushCommand [{self.name}: {render_value(self.value)}]"

    def execute(self, context, enabled):
        if enabled:
            context.properties.push(self.name, self.value)
        context.echo(self.lines)


@dataclass(frozen=True)
class PopCommand(OutputCommand):
    property: Property
    name: str

    def describe(self, context):
        return f"PopCommand [{self.name}]"

    def run(self, context):
        if not context.properties.pop(self.name):
            context.write(f"Cannot pop {self.name}: stack is empty")


@dataclass(frozen=True)
class ShowCommand(OutputCommand):
    property: Property
    name: str

    def describe(self, context):
        return f"ShowCommand [{self.name}]"

    def run(self, context):
        context.write(f"{self.name} {render_value(context.properties.get(self.name))}")


@dataclass(frozen=True)
class SkipCommand(SimpleCommand):
    """Disables the rest of the script."""

    def execute(self, context, enabled):
        if enabled:
            context.skip = True
            context.execute = False
        context.echo(self.lines)


@dataclass(frozen=True)
class CompositeCommand(Command):
    """A sequence of commands, each isolated from the others' failures."""

    commands: Tuple[Command, ...]

    def describe(self, context):
        return f"CompositeCommand [{len(self.commands)} commands]"

    def execute(self, context, enabled):
        for command in self.commands:
            logger.debug(f"Executing {command.describe(context)}")
            try:
                command.execute(context, enabled and context.execute)
            except MemoryError as e:
                self._report(context, command, e)
                raise
            except Exception as e:
                self._report(context, command, e)
            except BaseException as e:
                self._report(context, command, e)
                raise

    @staticmethod
    def _report(context: "ExecutionContext", command: Command, error: BaseException) -> None:
        description = command.describe(context)
        logger.debug(f"Error while executing command {description}", exc_info=True)
        echoing, context.echoing = context.echoing, True
        try:
            command.execute(context, False)
        except Exception:
            logger.debug(f"Error while echoing command {description}", exc_info=True)
        finally:
            context.echoing = echoing
        context.write(f"Error while executing command {description}")
        context.write_stack(error)


@dataclass(frozen=True)
class IfCommand(Command):
    """Runs its body if a variable path is true.

    Once ``!skip`` has been seen, or while a failed command is being echoed,
    the body inherits the enclosing enabled state instead.
    """

    if_lines: Lines
    end_lines: Lines
    variables: Tuple[str, ...]
    body: CompositeCommand

    def describe(self, context):
        return f"IfCommand [{'.'.join(self.variables)}]"

    def execute(self, context, enabled):
        if context.skip or context.echoing:
            body_enabled = enabled
        else:
            body_enabled = context.resolve(self.variables)
        context.echo(self.if_lines)
        self.body.execute(context, body_enabled)
        context.echo(self.end_lines)
