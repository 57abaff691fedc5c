"""Connection factories: map a database name to a live connection."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from sqlidem.db.base import Connection
from sqlidem.exceptions import DatabaseError, UnknownDatabaseError

if TYPE_CHECKING:
    from sqlidem.config.models import DatabaseConfig

logger = logging.getLogger(__name__)


class ConnectionFactory(ABC):
    """Creates connections to databases, identified by name."""

    @abstractmethod
    def connect(self, name: str, reference: bool) -> Optional[Connection]:
        """Create a connection.

        Args:
            name: Database name.
            reference: Whether a connection to the reference database is
                wanted; reference databases answer ``!verify``.

        Returns:
            A connection, or None if this factory does not know the name.
        """
        pass

    def close(self) -> None:
        """Release pooled resources held by the factory."""
        pass


class SimpleConnectionFactory(ConnectionFactory):
    """Connects one database name to a SQLAlchemy URL.

    Optional ``verify`` and ``populate`` callbacks prepare the database
    lazily: on the first primary connection, ``verify(connection)`` is
    called and, if it returns False (or is absent while ``populate`` is
    given), ``populate(connection)`` runs. Only the first caller attempts
    population; a failure is raised to that caller.
    """

    def __init__(
        self,
        name: str,
        url: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        reference_url: Optional[str] = None,
        verify: Optional[Callable[[Connection], bool]] = None,
        populate: Optional[Callable[[Connection], None]] = None,
        explain_prefix: Optional[str] = None,
        engine_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.url = url
        self.user = user or None
        self.password = password or None
        self.reference_url = reference_url
        self._verify = verify
        self._populate = populate
        self.explain_prefix = explain_prefix
        self._engine_options = engine_options or {}
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()
        self._populated = False

    def connect(self, name: str, reference: bool) -> Optional[Connection]:
        if name != self.name:
            return None
        if reference:
            if self.reference_url is None:
                return None
            url = self.reference_url
        else:
            url = self.url
        try:
            connection = Connection(name, self._get_engine(url).connect(), self.explain_prefix)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to connect to '{name}': {e}", database=name) from e
        logger.debug(f"Opened {'reference ' if reference else ''}connection to '{name}'")
        if not reference:
            try:
                self._prepare(connection)
            except Exception:
                connection.close()
                raise
        return connection

    def _get_engine(self, url: str) -> Engine:
        with self._lock:
            engine = self._engines.get(url)
            if engine is None:
                sa_url = make_url(url)
                if self.user is not None:
                    sa_url = sa_url.set(username=self.user)
                if self.password is not None:
                    sa_url = sa_url.set(password=self.password)
                engine = create_engine(sa_url, **self._engine_options)
                self._engines[url] = engine
            return engine

    def _prepare(self, connection: Connection) -> None:
        if self._verify is None and self._populate is None:
            return
        with self._lock:
            if self._populated:
                return
            self._populated = True
            if self._verify is not None and self._verify(connection):
                return
            if self._populate is not None:
                logger.info(f"Populating database '{self.name}'")
                self._populate(connection)

    def close(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()

    def __repr__(self) -> str:
        return f"SimpleConnectionFactory({self.name!r}, {self.url!r})"


class ChainingConnectionFactory(ConnectionFactory):
    """Asks each factory in turn; the first connection returned wins."""

    def __init__(self, factories: Iterable[ConnectionFactory]) -> None:
        self.factories: List[ConnectionFactory] = list(factories)

    def connect(self, name: str, reference: bool) -> Optional[Connection]:
        for factory in self.factories:
            connection = factory.connect(name, reference)
            if connection is not None:
                return connection
        return None

    def close(self) -> None:
        for factory in self.factories:
            factory.close()


class UnsupportedConnectionFactory(ConnectionFactory):
    """Terminal factory: knows no database.

    Reference connections are optional, so asking for one returns None;
    asking for a primary connection raises.
    """

    def connect(self, name: str, reference: bool) -> Optional[Connection]:
        if reference:
            return None
        raise UnknownDatabaseError(f"Unknown database: {name}", database=name)


def from_config(databases: Mapping[str, "DatabaseConfig"]) -> ChainingConnectionFactory:
    """Build a factory for the databases of a configuration file."""
    return ChainingConnectionFactory(
        SimpleConnectionFactory(
            name,
            database.url,
            database.user,
            database.password,
            reference_url=database.reference_url,
            explain_prefix=database.explain_prefix,
        )
        for name, database in databases.items()
    )


def simple(name: str, url: str, user: Optional[str] = None, password: Optional[str] = None,
           **kwargs: Any) -> SimpleConnectionFactory:
    return SimpleConnectionFactory(name, url, user, password, **kwargs)


def chain(*factories: ConnectionFactory) -> ChainingConnectionFactory:
    return ChainingConnectionFactory(factories)


def unsupported() -> UnsupportedConnectionFactory:
    return UnsupportedConnectionFactory()


def empty() -> ChainingConnectionFactory:
    """A factory that knows no database and returns None for every name."""
    return ChainingConnectionFactory([])
