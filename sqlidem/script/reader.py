"""Line reader with one line of push-back."""

from typing import Iterable, List, Optional


class LineReader:
    """Reads script lines, remembering the lines read since the last mark.

    Line terminators are removed; the text of each line is kept exactly.
    """

    def __init__(self, source: Iterable[str]) -> None:
        self._source = iter(source)
        self._last: Optional[str] = None
        self._pushed = False
        self._eof = False
        self.lines: List[str] = []
        self.line_number = 0

    def next_line(self) -> Optional[str]:
        """Return the next line, or None at end of input."""
        if self._pushed:
            self._pushed = False
            self.line_number += 1
            self.lines.append(self._last)
            return self._last
        if self._eof:
            return None
        raw = next(self._source, None)
        if raw is None:
            self._eof = True
            self._last = None
            return None
        line = strip_terminator(raw)
        self._last = line
        self.line_number += 1
        self.lines.append(line)
        return line

    def push_back(self) -> None:
        """Return the last line read, so that the next call reads it again."""
        if self._pushed:
            raise AssertionError("cannot push two lines")
        if self._last is None:
            raise AssertionError("no line has been read")
        self._pushed = True
        self.line_number -= 1
        self.lines.pop()

    def mark(self) -> None:
        """Start collecting a new group of lines."""
        self.lines = []

    def take(self) -> List[str]:
        """Return the lines collected since the last mark, and mark."""
        lines = self.lines
        self.lines = []
        return lines


def strip_terminator(raw: str) -> str:
    if raw.endswith("\r\n"):
        return raw[:-2]
    if raw.endswith("\n") or raw.endswith("\r"):
        return raw[:-1]
    return raw
