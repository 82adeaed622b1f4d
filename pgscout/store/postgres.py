"""
PostgreSQL data source - psycopg2 connections, queries and database discovery.

Every connection is exclusively owned by the code path that opened it and is
closed when the `connect()` context exits, including on error.
"""

import datetime
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterator, List, Optional

import psycopg2

from ..engine.deadline import Deadline
from ..model.errors import ConnectError, DiscoveryError, QueryError
from ..model.result import QueryResult

logger = logging.getLogger(__name__)


# Databases that allow connections and are not templates
QUERY_DATABASES_LIST = "SELECT datname FROM pg_database WHERE NOT datistemplate AND datallowconn ORDER BY datname"

APPLICATION_NAME = "pgscout"


@dataclass(frozen=True)
class ConnectionTarget:
    """Base connection target."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    dbname: str = "postgres"
    connect_timeout: int = 10

    def display(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    def for_database(self, dbname: str) -> "ConnectionTarget":
        return replace(self, dbname=dbname)


def to_text(value: Any) -> Optional[str]:
    """Render a driver value as a nullable string cell."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, memoryview):
        return value.tobytes().hex()
    return str(value)


class PostgresSource:
    """Open connection to one database."""

    def __init__(self, conn, database: str):
        self.conn = conn
        self.database = database

    def query(self, sql: str) -> QueryResult:
        """
        Execute a query and return its rows as nullable strings.

        Raises:
            QueryError: If execution fails
        """
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql)
                if cur.description is None:
                    return QueryResult(colnames=())
                colnames = tuple(col[0] for col in cur.description)
                rows = [tuple(to_text(v) for v in row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            raise QueryError(f"query on database {self.database} failed: {str(e).strip()}") from e

        return QueryResult(colnames=colnames, rows=rows)

    def list_databases(self) -> List[str]:
        """
        List connectable, non-template databases.

        Raises:
            DiscoveryError: If the catalog cannot be read
        """
        try:
            with self.conn.cursor() as cur:
                cur.execute(QUERY_DATABASES_LIST)
                return [row[0] for row in cur.fetchall()]
        except psycopg2.Error as e:
            raise DiscoveryError(f"list databases failed: {str(e).strip()}") from e

    def close(self):
        try:
            self.conn.close()
        except psycopg2.Error as e:
            logger.warning("failed to close database connection: %s; ignore", e)


class PostgresConnector:
    """Creates short-lived connections derived from a base target."""

    def __init__(self, target: ConnectionTarget):
        self.target = target

    def _connect_kwargs(self, target: ConnectionTarget, deadline: Optional[Deadline]) -> dict:
        kwargs = {
            "host": target.host,
            "port": target.port,
            "user": target.user,
            "dbname": target.dbname,
            "connect_timeout": target.connect_timeout,
            "application_name": APPLICATION_NAME,
        }
        if target.password:
            kwargs["password"] = target.password

        remaining = deadline.remaining() if deadline is not None else None
        if remaining is not None:
            # libpq treats connect_timeout below 2s as 2s; never pass 0 (infinite)
            kwargs["connect_timeout"] = max(1, min(target.connect_timeout, math.ceil(remaining)))
            kwargs["options"] = f"-c statement_timeout={max(1, int(remaining * 1000))}"
        return kwargs

    @contextmanager
    def connect(self, database: Optional[str] = None, deadline: Optional[Deadline] = None) -> Iterator[PostgresSource]:
        """
        Open a connection to `database` (default: the base target's).

        Raises:
            ConnectError: If the connection cannot be established
            ScrapeCancelled: If the deadline already expired
        """
        if deadline is not None:
            deadline.check()

        target = self.target.for_database(database) if database else self.target
        try:
            conn = psycopg2.connect(**self._connect_kwargs(target, deadline))
        except psycopg2.Error as e:
            raise ConnectError(self.target.display(), target.dbname, str(e).strip()) from e

        # monitoring queries are read-only; no transaction left open between them
        conn.autocommit = True
        source = PostgresSource(conn, target.dbname)
        try:
            yield source
        finally:
            source.close()
