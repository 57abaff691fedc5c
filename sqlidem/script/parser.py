"""Builds the command tree of a script."""

from typing import List, Optional, Tuple

from sqlidem.exceptions import ParseError
from sqlidem.script.commands import (
    CheckMode,
    CheckResultCommand,
    Command,
    CommentCommand,
    CompositeCommand,
    ExplainCommand,
    IfCommand,
    PopCommand,
    PushCommand,
    SetCommand,
    ShowCommand,
    SkipCommand,
    SqlCommand,
    TypeCommand,
    UseCommand,
)
from sqlidem.script.handlers import ChainingCommandHandler, CommandHandler
from sqlidem.script.lexer import (
    CONTENT_DIRECTIVES,
    CommentToken,
    Directive,
    DirectiveKind,
    DirectiveToken,
    ScriptLexer,
    SqlToken,
    parse_directive,
)
from sqlidem.script.reader import LineReader

_CHECK_MODES = {
    DirectiveKind.OK: CheckMode.OK,
    DirectiveKind.VERIFY: CheckMode.VERIFY,
    DirectiveKind.ERROR: CheckMode.ERROR,
    DirectiveKind.UPDATE: CheckMode.UPDATE,
}


def check_content(token: DirectiveToken, directive: Directive) -> None:
    """Reject an output block before a directive that produces no output."""
    if token.content and directive.kind not in CONTENT_DIRECTIVES:
        first = next((line for line in token.content if line), token.content[0])
        raise ParseError(
            "unterminated statement",
            line=first,
            line_number=token.line_number - len(token.content),
        )


class CommandParser:
    """Parses a script into a :class:`CompositeCommand`."""

    def __init__(self, reader: LineReader, command_handler: Optional[CommandHandler] = None) -> None:
        self.lexer = ScriptLexer(reader)
        self.command_handler = command_handler or ChainingCommandHandler()

    def parse(self) -> CompositeCommand:
        """Parse the whole script.

        Raises:
            ParseError: If the script is malformed.
        """
        commands, end = self._parse_block()
        if end is not None:
            raise ParseError(
                "'}' without matching 'if'", line=end.lines[-1], line_number=end.line_number
            )
        return CompositeCommand(tuple(commands))

    def _parse_block(self) -> Tuple[List[Command], Optional[DirectiveToken]]:
        commands: List[Command] = []
        while True:
            token = self.lexer.next_token()
            if token is None:
                return commands, None
            if isinstance(token, CommentToken):
                commands.append(CommentCommand(token.lines))
                continue
            if isinstance(token, SqlToken):
                commands.append(SqlCommand(token.lines, token.sql, token.sort))
                continue
            directive = parse_directive(token)
            check_content(token, directive)
            if directive.kind is DirectiveKind.END:
                return commands, token
            if directive.kind is DirectiveKind.IF:
                body, end = self._parse_block()
                if end is None:
                    raise ParseError(
                        "end of file reached before end of 'if' block",
                        line=token.lines[-1],
                        line_number=token.line_number,
                    )
                commands.append(IfCommand(
                    token.lines, end.lines, directive.variables, CompositeCommand(tuple(body))
                ))
                continue
            commands.append(self._command(token, directive))

    def _command(self, token: DirectiveToken, directive: Directive) -> Command:
        kind = directive.kind
        lines, content = token.lines, token.content
        if kind in _CHECK_MODES:
            return CheckResultCommand(lines, content, _CHECK_MODES[kind])
        if kind is DirectiveKind.PLAN:
            return ExplainCommand(lines, content)
        if kind is DirectiveKind.TYPE:
            return TypeCommand(lines, content)
        if kind is DirectiveKind.USE:
            return UseCommand(lines, directive.name)
        if kind is DirectiveKind.SKIP:
            return SkipCommand(lines)
        if kind is DirectiveKind.SET:
            return SetCommand(lines, directive.property, directive.name, directive.value)
        if kind is DirectiveKind.PUSH:
            return PushCommand(lines, directive.property, directive.name, directive.value)
        if kind is DirectiveKind.POP:
            return PopCommand(lines, content, directive.property, directive.name)
        if kind is DirectiveKind.SHOW:
            return ShowCommand(lines, content, directive.property, directive.name)
        command = self.command_handler.parse_command(list(lines), list(content), token.text)
        if command is None:
            raise ParseError(
                f"Unknown command: {token.text}", line=lines[-1], line_number=token.line_number
            )
        return command


def parse_script(reader: LineReader, command_handler: Optional[CommandHandler] = None) -> CompositeCommand:
    return CommandParser(reader, command_handler).parse()
