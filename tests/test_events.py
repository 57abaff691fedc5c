"""Tests for event-driven parsing and script rewriting."""

import io
from collections import Counter

import pytest

from sqlidem.exceptions import ParseError
from sqlidem.script.commands import SimpleCommand
from sqlidem.script.events import EventHandler, EventWriter, parse_events, rewrite
from sqlidem.script.handlers import CommandHandler
from sqlidem.script.properties import Property


class CountingHandler(EventHandler):
    """Counts events by kind."""

    def __init__(self):
        self.counts = Counter()
        self.values = []

    def comment(self, lines):
        self.counts["comment"] += 1

    def sql(self, lines, sql, sort):
        self.counts["sql"] += 1

    def use(self, lines, name):
        self.counts["use"] += 1
        self.values.append(("use", name))

    def ok(self, lines, content):
        self.counts["ok"] += 1

    def verify(self, lines, content):
        self.counts["verify"] += 1

    def update(self, lines, content):
        self.counts["update"] += 1

    def plan(self, lines, content):
        self.counts["plan"] += 1

    def type(self, lines, content):
        self.counts["type"] += 1

    def error(self, lines, content):
        self.counts["error"] += 1
        self.values.append(("error", content))

    def skip(self, lines):
        self.counts["skip"] += 1

    def set(self, lines, property, name, value):
        self.counts["set"] += 1
        self.values.append(("set", name, value))

    def push(self, lines, property, name, value):
        self.counts["push"] += 1

    def pop(self, lines, content, property, name):
        self.counts["pop"] += 1

    def show(self, lines, content, property, name):
        self.counts["show"] += 1

    def command(self, lines, content, command):
        self.counts["command"] += 1

    def if_begin(self, if_lines, variables):
        self.counts["if"] += 1
        return self


class EchoHandler(CommandHandler):

    def parse_command(self, lines, content, line):
        if line.startswith("echo"):
            return SimpleCommand(tuple(lines))
        return None


def test_counts(resource) -> None:
    handler = CountingHandler()
    parse_events(resource("all.iq"), handler)
    counts = handler.counts
    assert counts["sql"] == 10
    assert counts["ok"] == 5
    assert counts["if"] == 2
    assert counts["set"] == 3
    assert counts["push"] == 2
    assert counts["pop"] == 2
    assert counts["show"] == 3
    for kind in ("use", "verify", "update", "plan", "type", "error", "skip"):
        assert counts[kind] == 1, kind
    assert ("use", "scott") in handler.values
    assert ("error", ("no such table: nosuch",)) in handler.values
    assert ("set", "foo", "quoted value") in handler.values


def test_rewrite_reproduces_script(resource) -> None:
    for name in ("all.iq", "scott.iq"):
        text = resource(name)
        assert rewrite(text) == text


def test_rewrite_from_lines(resource) -> None:
    text = resource("scott.iq")
    assert rewrite(text.splitlines(keepends=True)) == text


def test_nested_handler_receives_block_events() -> None:
    inner = CountingHandler()
    ended = []

    class Outer(CountingHandler):
        def if_begin(self, if_lines, variables):
            assert variables == ("a", "b")
            return inner

        def if_end(self, handler, if_lines, end_lines, variables):
            ended.append((handler, if_lines, end_lines))

    outer = Outer()
    parse_events("!show x\n!if (a.b) {\nselect 1;\n!ok\n!}\n", outer)
    assert outer.counts == Counter({"show": 1})
    assert inner.counts == Counter({"sql": 1, "ok": 1})
    assert ended == [(inner, ("!if (a.b) {",), ("!}",))]


def test_custom_command() -> None:
    handler = CountingHandler()
    parse_events("!echo hello\n", handler, EchoHandler())
    assert handler.counts["command"] == 1
    assert rewrite("out\n!echo hello\n", EchoHandler()) == "out\n!echo hello\n"


def test_unknown_command() -> None:
    with pytest.raises(ParseError, match="Unknown command: echo hello"):
        rewrite("!echo hello\n")


def test_output_format_property() -> None:
    props = []

    class Props(EventHandler):
        def set(self, lines, property, name, value):
            props.append((property, name, str(value)))

    parse_events("!set outputformat psql\n!set other 1\n", Props())
    assert props == [(Property.OUTPUTFORMAT, "outputformat", "psql"), (Property.OTHER, "other", "1")]


def test_event_writer_writes_content_before_directive() -> None:
    out = io.StringIO()
    EventWriter(out).show(("!show foo",), ("foo 1",), Property.OTHER, "foo")
    assert out.getvalue() == "foo 1\n!show foo\n"


def test_parse_errors() -> None:
    with pytest.raises(ParseError, match="end of file reached before end of 'if' block"):
        rewrite("!if (a) {\n")
    with pytest.raises(ParseError, match="'}' without matching 'if'"):
        rewrite("!}\n")
    with pytest.raises(ParseError, match="unterminated statement"):
        rewrite("text\n!use scott\n")
