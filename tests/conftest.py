"""
Pytest configuration and fixtures for sqlidem tests.

Provides a small SQLite "scott" database and connection factories for it.
"""
import sqlite3
from pathlib import Path

import pytest

from sqlidem.db.factories import SimpleConnectionFactory, chain, unsupported
from sqlidem.script.engine import run_script

RESOURCES = Path(__file__).parent / "resources"

SCOTT_SCRIPT = """
    CREATE TABLE dept (
        deptno INTEGER PRIMARY KEY,
        dname TEXT NOT NULL,
        loc TEXT
    );

    CREATE TABLE emp (
        empno INTEGER PRIMARY KEY,
        ename TEXT NOT NULL,
        job TEXT,
        mgr INTEGER,
        hiredate TEXT,
        sal INTEGER,
        comm INTEGER,
        deptno INTEGER REFERENCES dept (deptno)
    );

    INSERT INTO dept VALUES
        (10, 'ACCOUNTING', 'NEW YORK'),
        (20, 'RESEARCH', 'DALLAS'),
        (30, 'SALES', 'CHICAGO'),
        (40, 'OPERATIONS', 'BOSTON');

    INSERT INTO emp VALUES
        (7369, 'SMITH', 'CLERK', 7902, '1980-12-17', 800, NULL, 20),
        (7499, 'ALLEN', 'SALESMAN', 7698, '1981-02-20', 1600, 300, 30),
        (7521, 'WARD', 'SALESMAN', 7698, '1981-02-22', 1250, 500, 30),
        (7566, 'JONES', 'MANAGER', 7839, '1981-02-04', 2975, NULL, 20),
        (7654, 'MARTIN', 'SALESMAN', 7698, '1981-09-28', 1250, 1400, 30),
        (7698, 'BLAKE', 'MANAGER', 7839, '1981-01-05', 2850, NULL, 30),
        (7782, 'CLARK', 'MANAGER', 7839, '1981-06-09', 2450, NULL, 10),
        (7788, 'SCOTT', 'ANALYST', 7566, '1987-04-19', 3000, NULL, 20),
        (7839, 'KING', 'PRESIDENT', NULL, '1981-11-17', 5000, NULL, 10),
        (7844, 'TURNER', 'SALESMAN', 7698, '1981-09-08', 1500, 0, 30),
        (7876, 'ADAMS', 'CLERK', 7788, '1987-05-23', 1100, NULL, 20),
        (7900, 'JAMES', 'CLERK', 7698, '1981-12-03', 950, NULL, 30),
        (7902, 'FORD', 'ANALYST', 7566, '1981-12-03', 3000, NULL, 20),
        (7934, 'MILLER', 'CLERK', 7782, '1982-01-23', 1300, NULL, 10);
"""


def create_scott(path: Path) -> Path:
    """Create the scott database at ``path``."""
    conn = sqlite3.connect(path)
    conn.executescript(SCOTT_SCRIPT)
    conn.commit()
    conn.close()
    return path


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{path}"


@pytest.fixture
def scott_db(tmp_path):
    """Path of a freshly created scott database."""
    return create_scott(tmp_path / "scott.db")


@pytest.fixture
def scott_ref_db(tmp_path):
    """A second copy of scott, used as the reference database."""
    return create_scott(tmp_path / "scott_ref.db")


@pytest.fixture
def connection_factory(scott_db):
    """Factory knowing 'scott', ending in the unsupported factory."""
    factory = chain(SimpleConnectionFactory("scott", sqlite_url(scott_db)), unsupported())
    yield factory
    factory.close()


@pytest.fixture
def run(connection_factory):
    """Run a script against the scott factory and return the output text."""
    def _run(script, **options):
        options.setdefault("connection_factory", connection_factory)
        return run_script(script, **options)
    return _run


@pytest.fixture
def resource():
    """Read a script from tests/resources."""
    def _resource(name):
        return (RESOURCES / name).read_text(encoding="utf-8")
    return _resource
