"""Script parsing and execution."""

from sqlidem.script.commands import Command, CompositeCommand, SimpleCommand
from sqlidem.script.context import ExecutionContext
from sqlidem.script.engine import EngineConfig, ScriptEngine, run_script
from sqlidem.script.events import EventHandler, EventWriter, parse_events
from sqlidem.script.formats import OUTPUT_FORMATS, OutputFormat, output_format
from sqlidem.script.handlers import ChainingCommandHandler, CommandHandler
from sqlidem.script.lexer import is_probably_deterministic

__all__ = [
    "Command",
    "CompositeCommand",
    "SimpleCommand",
    "ExecutionContext",
    "EngineConfig",
    "ScriptEngine",
    "run_script",
    "EventHandler",
    "EventWriter",
    "parse_events",
    "OUTPUT_FORMATS",
    "OutputFormat",
    "output_format",
    "CommandHandler",
    "ChainingCommandHandler",
    "is_probably_deterministic",
]
