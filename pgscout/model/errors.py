"""
Error types raised by the extraction engine.

Definition errors are raised at compile time and skip one subsystem.
Data-source errors are isolated to one (database, subsystem) pair or to one
collection path. Value errors never leave the row mapper.
"""

from typing import Optional


class PgScoutError(Exception):
    """Base class for all pgscout errors."""
    pass


class DefinitionError(PgScoutError):
    """Subsystem definition cannot be compiled."""

    def __init__(self, subsystem: str, message: str):
        self.subsystem = subsystem
        self.message = message
        super().__init__(f"subsystem '{subsystem}': {message}")


class UnitParseError(PgScoutError):
    """Unit string has an unknown suffix or a malformed multiplier."""
    pass


class DataSourceError(PgScoutError):
    """Data source (connection, query, discovery) failed."""
    pass


class ConnectError(DataSourceError):
    """Connecting to a database failed."""

    def __init__(self, target: str, database: Optional[str], message: str):
        self.target = target
        self.database = database
        where = f"{target}/{database}" if database else target
        super().__init__(f"connect to {where} failed: {message}")


class QueryError(DataSourceError):
    """Query execution failed."""
    pass


class DiscoveryError(DataSourceError):
    """Listing databases failed."""
    pass


class ScrapeCancelled(PgScoutError):
    """Caller-supplied deadline expired or cancellation was requested."""
    pass
