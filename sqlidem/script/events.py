"""Event-driven script parsing.

:func:`parse_events` reads a script with the same grammar as the engine
but, instead of building commands, calls an :class:`EventHandler` method
for each construct. Handlers can collect statistics or, like
:class:`EventWriter`, rewrite a script.
"""

import io
from typing import Any, Iterable, Optional, TextIO, Tuple, Union

from sqlidem.exceptions import ParseError
from sqlidem.script.commands import Command
from sqlidem.script.handlers import ChainingCommandHandler, CommandHandler
from sqlidem.script.lexer import (
    CommentToken,
    DirectiveKind,
    ScriptLexer,
    SqlToken,
    parse_directive,
)
from sqlidem.script.parser import check_content
from sqlidem.script.properties import Property
from sqlidem.script.reader import LineReader

Lines = Tuple[str, ...]


class EventHandler:
    """Receives parse events. Every method does nothing by default.

    ``lines`` are the source lines of a construct; ``content`` is the
    expected-output block that preceded a directive.
    """

    def comment(self, lines: Lines) -> None:
        pass

    def sql(self, lines: Lines, sql: str, sort: bool) -> None:
        pass

    def use(self, lines: Lines, name: str) -> None:
        pass

    def ok(self, lines: Lines, content: Lines) -> None:
        pass

    def verify(self, lines: Lines, content: Lines) -> None:
        pass

    def update(self, lines: Lines, content: Lines) -> None:
        pass

    def plan(self, lines: Lines, content: Lines) -> None:
        pass

    def type(self, lines: Lines, content: Lines) -> None:
        pass

    def error(self, lines: Lines, content: Lines) -> None:
        pass

    def skip(self, lines: Lines) -> None:
        pass

    def set(self, lines: Lines, property: Property, name: str, value: Any) -> None:
        pass

    def push(self, lines: Lines, property: Property, name: str, value: Any) -> None:
        pass

    def pop(self, lines: Lines, content: Lines, property: Property, name: str) -> None:
        pass

    def show(self, lines: Lines, content: Lines, property: Property, name: str) -> None:
        pass

    def command(self, lines: Lines, content: Lines, command: Command) -> None:
        """A custom directive, parsed by a command handler."""
        pass

    def if_begin(self, if_lines: Lines, variables: Tuple[str, ...]) -> "EventHandler":
        """Start of an ``!if`` block.

        Returns:
            The handler that receives the events of the block's body.
        """
        return self

    def if_end(self, handler: "EventHandler", if_lines: Lines, end_lines: Lines,
               variables: Tuple[str, ...]) -> None:
        """End of an ``!if`` block; ``handler`` is the one ``if_begin`` returned."""
        pass


class EventWriter(EventHandler):
    """Writes every construct back out, reproducing the parsed script."""

    def __init__(self, out: TextIO) -> None:
        self.out = out

    def _write(self, *groups: Lines) -> None:
        for lines in groups:
            for line in lines:
                self.out.write(line + "\n")

    def comment(self, lines):
        self._write(lines)

    def sql(self, lines, sql, sort):
        self._write(lines)

    def use(self, lines, name):
        self._write(lines)

    def ok(self, lines, content):
        self._write(content, lines)

    def verify(self, lines, content):
        self._write(content, lines)

    def update(self, lines, content):
        self._write(content, lines)

    def plan(self, lines, content):
        self._write(content, lines)

    def type(self, lines, content):
        self._write(content, lines)

    def error(self, lines, content):
        self._write(content, lines)

    def skip(self, lines):
        self._write(lines)

    def set(self, lines, property, name, value):
        self._write(lines)

    def push(self, lines, property, name, value):
        self._write(lines)

    def pop(self, lines, content, property, name):
        self._write(content, lines)

    def show(self, lines, content, property, name):
        self._write(content, lines)

    def command(self, lines, content, command):
        self._write(content, lines)

    def if_begin(self, if_lines, variables):
        self._write(if_lines)
        return self

    def if_end(self, handler, if_lines, end_lines, variables):
        self._write(end_lines)


class _EventParser:
    def __init__(self, reader: LineReader, command_handler: CommandHandler) -> None:
        self.lexer = ScriptLexer(reader)
        self.command_handler = command_handler

    def parse(self, handler: EventHandler) -> None:
        end = self._parse_block(handler)
        if end is not None:
            raise ParseError("'}' without matching 'if'", line=end.lines[-1], line_number=end.line_number)

    def _parse_block(self, handler: EventHandler):
        while True:
            token = self.lexer.next_token()
            if token is None:
                return None
            if isinstance(token, CommentToken):
                handler.comment(token.lines)
                continue
            if isinstance(token, SqlToken):
                handler.sql(token.lines, token.sql, token.sort)
                continue
            directive = parse_directive(token)
            check_content(token, directive)
            kind = directive.kind
            lines, content = token.lines, token.content
            if kind is DirectiveKind.END:
                return token
            if kind is DirectiveKind.IF:
                nested = handler.if_begin(lines, directive.variables)
                end = self._parse_block(nested)
                if end is None:
                    raise ParseError(
                        "end of file reached before end of 'if' block",
                        line=lines[-1],
                        line_number=token.line_number,
                    )
                handler.if_end(nested, lines, end.lines, directive.variables)
            elif kind is DirectiveKind.USE:
                handler.use(lines, directive.name)
            elif kind is DirectiveKind.SKIP:
                handler.skip(lines)
            elif kind is DirectiveKind.SET:
                handler.set(lines, directive.property, directive.name, directive.value)
            elif kind is DirectiveKind.PUSH:
                handler.push(lines, directive.property, directive.name, directive.value)
            elif kind is DirectiveKind.POP:
                handler.pop(lines, content, directive.property, directive.name)
            elif kind is DirectiveKind.SHOW:
                handler.show(lines, content, directive.property, directive.name)
            elif kind is DirectiveKind.OTHER:
                command = self.command_handler.parse_command(list(lines), list(content), token.text)
                if command is None:
                    raise ParseError(
                        f"Unknown command: {token.text}", line=lines[-1], line_number=token.line_number
                    )
                handler.command(lines, content, command)
            else:
                # ok, verify, update, plan, type, error
                getattr(handler, kind.value)(lines, content)


def parse_events(
    source: Union[str, Iterable[str]],
    handler: EventHandler,
    command_handler: Optional[CommandHandler] = None,
) -> None:
    """Parse a script, reporting each construct to ``handler``.

    Args:
        source: Script text, or an iterable of lines such as an open file.
        handler: Receives the events.
        command_handler: Parses custom directives.

    Raises:
        ParseError: If the script is malformed.
    """
    if isinstance(source, str):
        source = io.StringIO(source)
    parser = _EventParser(LineReader(source), command_handler or ChainingCommandHandler())
    parser.parse(handler)


def rewrite(source: Union[str, Iterable[str]], command_handler: Optional[CommandHandler] = None) -> str:
    """Parse a script and write it back out with :class:`EventWriter`."""
    out = io.StringIO()
    parse_events(source, EventWriter(out), command_handler)
    return out.getvalue()
