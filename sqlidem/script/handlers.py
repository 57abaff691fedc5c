"""Extension point for custom directives."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from sqlidem.script.commands import Command


class CommandHandler(ABC):
    """Parses directives that the engine does not know."""

    @abstractmethod
    def parse_command(self, lines: List[str], content: List[str], line: str) -> Optional[Command]:
        """Parse a directive.

        Args:
            lines: Source lines of the directive.
            content: Expected output lines preceding the directive.
            line: Directive text, without the leading ``!``.

        Returns:
            A command, or None if this handler does not recognize the text.
        """
        pass


class ChainingCommandHandler(CommandHandler):
    """Asks each handler in turn; the first command returned wins."""

    def __init__(self, handlers: Iterable[CommandHandler] = ()) -> None:
        self.handlers = list(handlers)

    def parse_command(self, lines, content, line):
        for handler in self.handlers:
            command = handler.parse_command(lines, content, line)
            if command is not None:
                return command
        return None
