"""Record and play back query results.

A recorder executes named queries. In RECORD mode it runs them against a
live database and saves each result to a fixture file; in PLAY mode it
answers them from that file without a database; in PASS_THROUGH mode it
just runs them.

The fixture file is a sequence of sections::

    # StartTest: count-emps
    !use scott
    select count(*) as c from emp;
    C:INTEGER
    14
    !ok
    # EndTest: count-emps
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from sqlidem.db.base import Connection, ResultSet
from sqlidem.db.factories import ConnectionFactory, unsupported
from sqlidem.exceptions import RecorderStateError, RecordingError
from sqlidem.record import codec

logger = logging.getLogger(__name__)

START_PREFIX = "# StartTest: "
END_PREFIX = "# EndTest: "
USE_PREFIX = "!use "
OK_LINE = "!ok"

Consumer = Callable[[ResultSet], None]


class Mode(str, Enum):
    """Recorder modes."""
    PLAY = "play"
    RECORD = "record"
    PASS_THROUGH = "pass_through"


@dataclass(frozen=True)
class RecorderConfig:
    """Immutable recorder configuration; ``with_*`` methods return copies."""

    file: Optional[Path] = None
    mode: Mode = Mode.PLAY
    connection_factory: ConnectionFactory = field(default_factory=unsupported)

    def with_file(self, file: Union[str, Path, None]) -> "RecorderConfig":
        return replace(self, file=Path(file) if file is not None else None)

    def with_mode(self, mode: Mode) -> "RecorderConfig":
        return replace(self, mode=Mode(mode))

    def with_connection_factory(self, connection_factory: ConnectionFactory) -> "RecorderConfig":
        return replace(self, connection_factory=connection_factory)


def config() -> RecorderConfig:
    """Return the default configuration: PLAY mode, no file, no databases."""
    return RecorderConfig()


@dataclass(frozen=True)
class Section:
    """One recorded query and its serialized result."""

    name: str
    db: str
    sql: str
    result: str

    def to_result_set(self) -> codec.RecordedResultSet:
        return codec.read(self.result)

    def text(self) -> str:
        return (
            f"{START_PREFIX}{self.name}\n"
            f"{USE_PREFIX}{self.db}\n"
            f"{self.sql};\n"
            f"{self.result}"
            f"{OK_LINE}\n"
            f"{END_PREFIX}{self.name}\n"
        )


def parse_sections(lines: Iterable[str]) -> List[Section]:
    """Parse the sections of a fixture file.

    Raises:
        RecordingError: If a section is incomplete or its end marker names
            a different section.
    """
    sections: List[Section] = []
    name: Optional[str] = None
    db: Optional[str] = None
    sql: Optional[str] = None
    result: Optional[str] = None
    buffer: List[str] = []

    def finish() -> None:
        if db is None or sql is None or result is None:
            raise RecordingError(f"incomplete section '{name}'")
        sections.append(Section(name, db, sql, result))

    for raw in lines:
        line = raw.rstrip("\r\n")
        if line.startswith(START_PREFIX):
            if name is not None:
                finish()
            name, db, sql, result, buffer = line[len(START_PREFIX):].strip(), None, None, None, []
        elif name is None:
            continue
        elif line.startswith(END_PREFIX):
            end = line[len(END_PREFIX):].strip()
            if end != name:
                raise RecordingError(f"end '{end}' does not match start '{name}'")
            finish()
            name = None
        elif sql is None and line.startswith(USE_PREFIX):
            db = line[len(USE_PREFIX):].strip()
        elif sql is None:
            buffer.append(line)
            if line.endswith(";"):
                sql = "\n".join(buffer)[:-1]
                buffer = []
        elif line == OK_LINE:
            result = "".join(b + "\n" for b in buffer)
            buffer = []
        else:
            buffer.append(line)
    if name is not None:
        finish()
    return sections


class Recorder(ABC):
    """Executes named queries on behalf of tests."""

    def __init__(self, config: RecorderConfig) -> None:
        self.config = config

    @abstractmethod
    def execute_query(self, db: str, name: str, sql: str, consumer: Consumer) -> None:
        """Execute a query and pass its result set to ``consumer``.

        Args:
            db: Database name, resolved by the connection factory.
            name: Unique name of the query within the recording.
            sql: Query text.
            consumer: Called once with the result set.
        """
        pass

    def close(self) -> None:
        pass

    def _connect(self, db: str) -> Connection:
        connection = self.config.connection_factory.connect(db, False)
        if connection is None:
            raise RecorderStateError(f"unknown connection {db}")
        return connection

    def __enter__(self) -> "Recorder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class PassThroughRecorder(Recorder):
    """Runs every query against the database; records nothing."""

    def execute_query(self, db, name, sql, consumer):
        with self._connect(db) as connection:
            with connection.execute_query(sql) as result_set:
                consumer(result_set)


class _FileRecorder(Recorder):
    def __init__(self, config: RecorderConfig) -> None:
        if config.file is None:
            raise RecorderStateError(f"mode '{config.mode.name}' requires a file")
        super().__init__(config)
        self.file = config.file


class RecordingRecorder(_FileRecorder):
    """Runs queries against the database and writes their results on close."""

    def __init__(self, config: RecorderConfig) -> None:
        super().__init__(config)
        self.sections: Dict[str, Section] = {}

    def execute_query(self, db, name, sql, consumer):
        with self._connect(db) as connection:
            with connection.execute_query(sql) as result_set:
                section = Section(name, db, sql, codec.write(result_set))
        self.sections[name] = section
        with section.to_result_set() as result_set:
            consumer(result_set)

    def close(self) -> None:
        text = "".join(self.sections[name].text() for name in sorted(self.sections))
        self.file.write_text(text, encoding="utf-8")
        logger.info(f"Wrote {len(self.sections)} recorded queries to {self.file}")


class PlayingRecorder(_FileRecorder):
    """Answers queries from a fixture file, without a database."""

    def __init__(self, config: RecorderConfig) -> None:
        super().__init__(config)
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                sections = parse_sections(f)
        except OSError as e:
            raise RecordingError(f"cannot read recording '{self.file}': {e}") from e
        self.sections_by_name: Dict[str, Section] = {s.name: s for s in sections}
        self.sections_by_sql: Dict[Tuple[str, str], Section] = {(s.db, s.sql): s for s in sections}
        logger.info(f"Loaded {len(sections)} recorded queries from {self.file}")

    def execute_query(self, db, name, sql, consumer):
        section = self.sections_by_sql.get((db, sql))
        if section is None:
            raise RecordingError(f"sql [{sql}] is not in recording")
        with section.to_result_set() as result_set:
            consumer(result_set)


def create(config: RecorderConfig) -> Recorder:
    """Create a recorder for the configured mode.

    Raises:
        RecorderStateError: If PLAY or RECORD mode has no file.
    """
    if config.mode is Mode.PLAY:
        return PlayingRecorder(config)
    if config.mode is Mode.RECORD:
        return RecordingRecorder(config)
    return PassThroughRecorder(config)
