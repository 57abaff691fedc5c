"""Script tokenizer and directive grammar.

A script is a sequence of three kinds of token:

* comments: a blank line or a line starting with ``#``;
* SQL statements: text lines up to a line ending in ``;``;
* directives: a line starting with ``!``, together with the block of text
  lines immediately before it, which is the directive's expected output.

The command parser and the event parser both read scripts through
:class:`ScriptLexer` and :func:`parse_directive`.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

from sqlidem.exceptions import ParseError
from sqlidem.script.properties import Property, parse_value
from sqlidem.script.reader import LineReader

KEYWORD_PATTERN = re.compile(r"([a-z]+)(?![A-Za-z0-9_])")
IF_PATTERN = re.compile(r"if \(([A-Za-z-][A-Za-z_0-9.]*)\) \{")


@dataclass(frozen=True)
class CommentToken:
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class SqlToken:
    lines: Tuple[str, ...]
    sql: str
    sort: bool


@dataclass(frozen=True)
class DirectiveToken:
    lines: Tuple[str, ...]
    content: Tuple[str, ...]
    text: str
    line_number: int


Token = Union[CommentToken, SqlToken, DirectiveToken]


class DirectiveKind(str, Enum):
    """Built-in directives, plus OTHER for text left to command handlers."""
    USE = "use"
    OK = "ok"
    VERIFY = "verify"
    UPDATE = "update"
    PLAN = "plan"
    TYPE = "type"
    ERROR = "error"
    SKIP = "skip"
    SET = "set"
    PUSH = "push"
    POP = "pop"
    SHOW = "show"
    IF = "if"
    END = "}"
    OTHER = "other"


# Directives that produce output and therefore accept an expected-output block.
CONTENT_DIRECTIVES = frozenset({
    DirectiveKind.OK,
    DirectiveKind.VERIFY,
    DirectiveKind.UPDATE,
    DirectiveKind.PLAN,
    DirectiveKind.TYPE,
    DirectiveKind.ERROR,
    DirectiveKind.SHOW,
    DirectiveKind.POP,
    DirectiveKind.OTHER,
})

_KEYWORDS = {
    kind.value: kind for kind in DirectiveKind
    if kind not in (DirectiveKind.IF, DirectiveKind.END, DirectiveKind.OTHER)
}


@dataclass(frozen=True)
class Directive:
    """A parsed directive line."""

    kind: DirectiveKind
    name: Optional[str] = None
    property: Optional[Property] = None
    value: Any = None
    variables: Tuple[str, ...] = ()


def is_probably_deterministic(sql: str) -> bool:
    """Guess whether a query returns rows in a deterministic order.

    True if the query contains ``ORDER BY`` and the last occurrence is not
    nested inside parentheses, e.g. inside a window specification.
    """
    upper = sql.upper()
    i = upper.rfind("ORDER BY")
    if i < 0:
        return False
    tail = upper[i:]
    return tail.count(")") <= tail.count("(")


def parse_directive(token: DirectiveToken) -> Directive:
    """Parse the text of a directive token.

    Raises:
        ParseError: If a built-in directive is malformed.
    """
    text = token.text.rstrip()
    if text == "}":
        return Directive(DirectiveKind.END)
    match = IF_PATTERN.fullmatch(text)
    if match:
        return Directive(DirectiveKind.IF, variables=tuple(match.group(1).split(".")))
    match = KEYWORD_PATTERN.match(text)
    kind = _KEYWORDS.get(match.group(1)) if match else None
    if kind is None:
        return Directive(DirectiveKind.OTHER)
    rest = text[match.end():].strip()

    def fail(message: str) -> ParseError:
        return ParseError(message, line=token.lines[-1], line_number=token.line_number)

    if kind is DirectiveKind.USE:
        if not rest:
            raise fail("use requires a database name")
        return Directive(kind, name=rest.split()[0])
    if kind in (DirectiveKind.SET, DirectiveKind.PUSH):
        parts = rest.split(None, 1)
        if len(parts) < 2:
            raise fail(f"{kind.value} requires a property name and a value")
        name, value_text = parts
        prop = Property.of(name)
        try:
            value = parse_value(prop, value_text)
        except ValueError as e:
            raise fail(str(e)) from e
        return Directive(kind, name=name, property=prop, value=value)
    if kind in (DirectiveKind.POP, DirectiveKind.SHOW):
        if not rest:
            raise fail(f"{kind.value} requires a property name")
        name = rest.split()[0]
        return Directive(kind, name=name, property=Property.of(name))
    return Directive(kind)


class ScriptLexer:
    """Splits a script into tokens."""

    def __init__(self, reader: LineReader) -> None:
        self.reader = reader

    def next_token(self) -> Optional[Token]:
        """Return the next token, or None at end of input.

        Raises:
            ParseError: If text is not terminated by ``;`` or followed by a
                directive.
        """
        reader = self.reader
        reader.mark()
        line = reader.next_line()
        if line is None:
            return None
        if line == "":
            # Blank lines followed by text belong to that text, so that an
            # output block may start with blank lines.
            while line == "":
                line = reader.next_line()
                if line is None:
                    return CommentToken(tuple(reader.take()))
            if line.startswith("#") or line.startswith("!"):
                reader.push_back()
                return CommentToken(tuple(reader.take()))
            return self._text(len(reader.lines) - 1)
        if line.startswith("#"):
            return CommentToken(tuple(reader.take()))
        if line.startswith("!"):
            return self._directive(())
        return self._text(0)

    def _text(self, leading: int) -> Token:
        reader = self.reader
        first_line_number = reader.line_number
        line = reader.lines[-1]
        while not line.endswith(";"):
            line = reader.next_line()
            if line is None:
                raise ParseError(
                    "end of file reached before end of SQL statement",
                    line=reader.lines[leading],
                    line_number=first_line_number,
                )
            if line.startswith("!"):
                reader.push_back()
                content = tuple(reader.take())
                reader.next_line()
                return self._directive(content)
            if line.startswith("#"):
                raise ParseError(
                    "unterminated statement",
                    line=reader.lines[leading],
                    line_number=first_line_number,
                )
        lines = reader.take()
        sql = "\n".join(lines[leading:])[:-1]
        return SqlToken(tuple(lines), sql, not is_probably_deterministic(sql))

    def _directive(self, content: Tuple[str, ...]) -> DirectiveToken:
        reader = self.reader
        lines = reader.take()
        text = lines[-1][1:].lstrip(" ")
        return DirectiveToken(tuple(lines), content, text, reader.line_number)
