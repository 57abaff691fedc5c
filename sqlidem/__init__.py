"""sqlidem: idempotent SQL test scripts.

sqlidem provides:
- A script language that interleaves SQL statements and result directives
- An engine that rewrites scripts with actual results
- CSV, MySQL, PSQL and Oracle style result formatting
- An event-driven parser for lossless script rewriting
- Record and playback of query results to fixture files
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from sqlidem.exceptions import (
    SQLIdemError,
    ConfigurationError,
    DatabaseError,
    ParseError,
)
from sqlidem.script.engine import EngineConfig, ScriptEngine, run_script

__all__ = [
    "__version__",
    "SQLIdemError",
    "ConfigurationError",
    "DatabaseError",
    "ParseError",
    "EngineConfig",
    "ScriptEngine",
    "run_script",
]
