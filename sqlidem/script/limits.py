"""Bounded rendering of stack traces."""

import traceback
from typing import List, Optional, TextIO

DEFAULT_STACK_LIMIT = 16384
TRUNCATION_MARKER = " (stack truncated)\n"


class LimitWriter:
    """Writes at most ``limit`` characters to a stream.

    Once the limit is reached, further output is discarded and
    :meth:`close` appends the truncation marker.
    """

    def __init__(self, out: TextIO, limit: int, ellipsis: str = TRUNCATION_MARKER) -> None:
        self.out = out
        self.limit = limit
        self.ellipsis = ellipsis
        self.length = 0
        self.truncated = False

    def write(self, text: str) -> int:
        room = self.limit - self.length
        if len(text) > room:
            self.truncated = True
        if room <= 0:
            return 0
        chunk = text[:room]
        self.out.write(chunk)
        self.length += len(chunk)
        return len(chunk)

    def close(self) -> None:
        if self.truncated:
            self.out.write(self.ellipsis)


def render_stack(error: BaseException) -> str:
    """Render an exception, message first, then frames, then its causes.

    Blank lines are dropped and lines starting with ``!`` or ``#`` are
    indented, so that the text can be read back as a script output block.
    """
    lines: List[str] = []
    seen = set()
    current: Optional[BaseException] = error
    prefix = ""
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        summary = "".join(traceback.format_exception_only(type(current), current))
        frames = "".join(traceback.format_tb(current.__traceback__))
        for i, line in enumerate((summary + frames).splitlines()):
            lines.append(prefix + line if i == 0 else line)
        prefix = "Caused by: "
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    escaped = [" " + line if line.startswith(("!", "#")) else line for line in lines if line.strip()]
    return "".join(line + "\n" for line in escaped)


def write_stack(out: TextIO, error: BaseException, limit: int) -> None:
    """Write the rendered stack of ``error``, truncated to ``limit`` characters."""
    writer = LimitWriter(out, limit)
    writer.write(render_stack(error))
    writer.close()
