"""Shared CLI utilities for sqlidem."""

from __future__ import annotations

import importlib
import logging
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape

# Single console instance reused across CLI modules
console = Console(stderr=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def print_exception(message: str, error: BaseException, verbose: bool = False) -> None:
    """Render a formatted exception message.

    Args:
        message: Friendly context message to display before the exception.
        error: Original exception instance.
        verbose: When True, render the full traceback for debugging.
    """
    console.print(f"[red]{escape(message)}: {escape(str(error))}[/red]", highlight=False)
    if verbose:
        console.print_exception()


def load_class(name: str) -> Optional[type]:
    """Import a class given as ``package.module:Class`` or ``package.module.Class``.

    Returns:
        The class, or None if the module or attribute does not exist.
    """
    if ":" in name:
        module_name, _, attr = name.partition(":")
    else:
        module_name, _, attr = name.rpartition(".")
    if not module_name or not attr:
        return None
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    value = getattr(module, attr, None)
    return value if isinstance(value, type) else None


def instantiate(name: str, kind: str) -> Any:
    """Create an instance of the named class using its no-argument constructor.

    Raises:
        LookupError: If the class cannot be found.
        TypeError: If the class cannot be instantiated.
    """
    cls = load_class(name)
    if cls is None:
        raise LookupError(f"{kind} class {name} not found")
    try:
        return cls()
    except Exception as e:
        raise TypeError(f"Error instantiating {kind.lower()} class {name}") from e
