"""Script properties: value tokens and per-name value stacks."""

import re
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlidem.script.formats import OutputFormat, output_format

INTEGER_PATTERN = re.compile(r"-?[0-9]+")

# Called with (name, value) whenever a property's visible value changes.
PropertyHandler = Callable[[str, Any], None]


class Property(str, Enum):
    """Properties the engine itself interprets."""
    OUTPUTFORMAT = "outputformat"
    OTHER = "other"

    @classmethod
    def of(cls, name: str) -> "Property":
        if name.lower() == cls.OUTPUTFORMAT.value:
            return cls.OUTPUTFORMAT
        return cls.OTHER


def parse_value(prop: Property, text: str) -> Any:
    """Parse the value token of ``!set`` or ``!push``.

    ``null``, ``true`` and ``false`` are literals, integers become
    :class:`~decimal.Decimal`, quoted text loses its quotes and anything
    else is a string. ``outputformat`` takes a format name.

    Raises:
        ValueError: If an output format name is not known.
    """
    text = text.strip()
    if prop is Property.OUTPUTFORMAT:
        return output_format(text)
    if text == "null":
        return None
    if text == "true":
        return True
    if text == "false":
        return False
    if INTEGER_PATTERN.fullmatch(text):
        return Decimal(text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1]
    return text


def render_value(value: Any) -> str:
    """Render a property value for ``!show``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, OutputFormat):
        return value.name
    return str(value)


class PropertyStacks:
    """A stack of values per property name.

    ``set`` replaces the top value, ``push`` adds one, ``pop`` removes one
    and reveals the value beneath. When a stack is empty the value comes
    from ``fallback``. Any spelling of ``outputformat`` names the same stack.
    """

    def __init__(
        self,
        fallback: Callable[[str], Any] = lambda name: None,
        handler: Optional[PropertyHandler] = None,
    ) -> None:
        self._stacks: Dict[str, List[Any]] = {}
        self._fallback = fallback
        self._handler = handler

    @staticmethod
    def key(name: str) -> str:
        if Property.of(name) is Property.OUTPUTFORMAT:
            return Property.OUTPUTFORMAT.value
        return name

    def __contains__(self, name: str) -> bool:
        return bool(self._stacks.get(self.key(name)))

    def get(self, name: str) -> Any:
        name = self.key(name)
        stack = self._stacks.get(name)
        if stack:
            return stack[-1]
        return self._fallback(name)

    def set(self, name: str, value: Any) -> None:
        name = self.key(name)
        stack = self._stacks.setdefault(name, [])
        if stack:
            stack[-1] = value
        else:
            stack.append(value)
        self._notify(name, value)

    def push(self, name: str, value: Any) -> None:
        name = self.key(name)
        self._stacks.setdefault(name, []).append(value)
        self._notify(name, value)

    def pop(self, name: str) -> bool:
        """Remove the top value.

        Returns:
            False if the stack was already empty.
        """
        name = self.key(name)
        stack = self._stacks.get(name)
        if not stack:
            return False
        stack.pop()
        self._notify(name, self.get(name))
        return True

    def _notify(self, name: str, value: Any) -> None:
        if self._handler is not None:
            self._handler(name, value)
