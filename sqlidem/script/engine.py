"""Runs scripts: parses the input and writes the rewritten script."""

import io
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, TextIO, Union

from sqlidem.db.factories import ConnectionFactory, unsupported
from sqlidem.script.commands import CompositeCommand
from sqlidem.script.context import ExecutionContext
from sqlidem.script.environment import Environment, empty_environment
from sqlidem.script.handlers import ChainingCommandHandler, CommandHandler
from sqlidem.script.limits import DEFAULT_STACK_LIMIT
from sqlidem.script.parser import CommandParser
from sqlidem.script.properties import PropertyHandler
from sqlidem.script.reader import LineReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Configuration of a script run.

    Attributes:
        reader: Script input.
        writer: Destination of the rewritten script.
        connection_factory: Resolves the names given to ``!use``.
        env: Variables for ``!if`` conditions and property defaults.
        command_handler: Parses custom directives.
        property_handler: Notified when a property value changes.
        stack_limit: Maximum length of a rendered stack trace.
    """

    reader: TextIO
    writer: TextIO
    connection_factory: ConnectionFactory = field(default_factory=unsupported)
    env: Environment = empty_environment
    command_handler: CommandHandler = field(default_factory=ChainingCommandHandler)
    property_handler: Optional[PropertyHandler] = None
    stack_limit: int = DEFAULT_STACK_LIMIT

    def with_connection_factory(self, connection_factory: ConnectionFactory) -> "EngineConfig":
        return replace(self, connection_factory=connection_factory)

    def with_env(self, env: Environment) -> "EngineConfig":
        return replace(self, env=env)

    def with_command_handler(self, command_handler: CommandHandler) -> "EngineConfig":
        return replace(self, command_handler=command_handler)

    def with_property_handler(self, property_handler: PropertyHandler) -> "EngineConfig":
        return replace(self, property_handler=property_handler)

    def with_stack_limit(self, stack_limit: int) -> "EngineConfig":
        return replace(self, stack_limit=stack_limit)


class ScriptEngine:
    """Executes a script, writing each command's lines and actual output."""

    def __init__(self, config: EngineConfig) -> None:
        self.config = config

    def parse(self) -> CompositeCommand:
        """Parse the script.

        Raises:
            ParseError: If the script is malformed.
        """
        return CommandParser(LineReader(self.config.reader), self.config.command_handler).parse()

    def execute(self) -> None:
        """Parse and run the script.

        Parse errors are raised before anything is written. Failures of
        individual commands are written to the output and do not stop the
        run.
        """
        command = self.parse()
        logger.debug(f"Parsed {len(command.commands)} top-level commands")
        config = self.config
        context = ExecutionContext(
            config.writer,
            config.connection_factory,
            config.env,
            config.property_handler,
            config.stack_limit,
        )
        try:
            command.execute(context, context.execute)
        finally:
            context.close()


def run_script(
    script: str,
    connection_factory: Optional[ConnectionFactory] = None,
    env: Union[Mapping[str, Any], Environment, None] = None,
    **options: Any,
) -> str:
    """Run a script given as text and return the rewritten text."""
    writer = io.StringIO()
    config = EngineConfig(
        reader=io.StringIO(script),
        writer=writer,
        connection_factory=connection_factory or unsupported(),
        env=env if env is not None else empty_environment,
        **options,
    )
    ScriptEngine(config).execute()
    return writer.getvalue()
