"""
CollectionOrchestrator - runs descriptor sets against one or many databases.

One collect() call is one synchronous scrape pass:

1. NEEDS_MULTI_DB: any set with a per-database rule?
2. MULTI_DB: bootstrap connection lists real databases, then every
   (database, matching set) pair gets its own short-lived connection.
3. SINGLE_DB: one connection to the base target runs every set without a
   per-database rule.
4. DONE: always reached; partial failures are recorded in the report.

Connections are opened, used and closed one at a time. Failures are isolated:
a broken pair never stops other pairs, a failed discovery never stops the
single-database path. Only an expired deadline ends the pass early.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..model.descriptor import DescriptorSet
from ..model.errors import DataSourceError, ScrapeCancelled
from .deadline import Deadline
from .filters import Filter
from .mapper import Sink, map_result
from .state import CollectionStateMachine, CollectState, StateEvent

logger = logging.getLogger(__name__)


PATH_MULTI_DB = "multi_db"
PATH_SINGLE_DB = "single_db"


@dataclass
class CollectionReport:
    """Outcome of one collection pass."""
    points: int = 0
    # (database, subsystem) -> error; database is None on the single-database path
    failures: Dict[Tuple[Optional[str], str], str] = field(default_factory=dict)
    # collection path -> error that aborted it (bootstrap connect, discovery)
    path_errors: Dict[str, str] = field(default_factory=dict)
    databases: List[str] = field(default_factory=list)
    cancelled: bool = False
    history: str = ""
    # state transitions; leaving MULTI_DB records databases visited, DONE the totals
    events: List[StateEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.path_errors and not self.cancelled


class CollectionOrchestrator:
    """
    Drives descriptor sets through a connector and the row mapper.

    The connector must provide `connect(database=None, deadline=None)`
    returning a context manager whose value has `database`, `query(sql)`
    and `list_databases()`.
    """

    def __init__(
        self,
        descriptor_sets: Sequence[DescriptorSet],
        connector,
        database_filter: Optional[Filter] = None,
    ):
        self.descriptor_sets = list(descriptor_sets)
        self.connector = connector
        self.database_filter = database_filter

    @property
    def multi_sets(self) -> List[DescriptorSet]:
        return [s for s in self.descriptor_sets if s.is_multi_database]

    @property
    def single_sets(self) -> List[DescriptorSet]:
        return [s for s in self.descriptor_sets if not s.is_multi_database]

    def needs_multi_db(self) -> bool:
        return any(s.is_multi_database for s in self.descriptor_sets)

    def collect(self, sink: Sink, deadline: Optional[Deadline] = None) -> CollectionReport:
        """
        Run one scrape pass, pushing every point into sink.

        Args:
            sink: Receives MetricPoints as they are produced
            deadline: Caller budget; when it expires the pass stops and
                points already emitted stay emitted

        Returns:
            CollectionReport with counts and isolated failures
        """
        deadline = deadline or Deadline.unbounded()
        report = CollectionReport()
        machine = CollectionStateMachine()

        machine.transition(CollectState.NEEDS_MULTI_DB)
        try:
            if self.needs_multi_db():
                machine.transition(CollectState.MULTI_DB)
                self._collect_multi(sink, deadline, report)
            machine.transition(CollectState.SINGLE_DB, {"databases": len(report.databases)})
            self._collect_single(sink, deadline, report)
        except ScrapeCancelled as e:
            report.cancelled = True
            logger.warning("collect interrupted: %s; %d points emitted", e, report.points)

        machine.transition(CollectState.DONE, {"points": report.points, "cancelled": report.cancelled})
        report.history = machine.format_history()
        report.events = machine.history
        return report

    def _collect_multi(self, sink: Sink, deadline: Deadline, report: CollectionReport):
        """Visit every matching database with its own connection."""
        deadline.check()
        try:
            with self.connector.connect(deadline=deadline) as conn:
                databases = conn.list_databases()
        except DataSourceError as e:
            logger.error("collect from multiple databases failed: %s; skip", e)
            report.path_errors[PATH_MULTI_DB] = str(e)
            return

        if self.database_filter is not None:
            databases = [d for d in databases if self.database_filter.passes(d)]

        for dbname in databases:
            sets = [s for s in self.multi_sets if s.matches(dbname)]
            if sets:
                report.databases.append(dbname)

            for descset in sets:
                deadline.check()
                try:
                    with self.connector.connect(database=dbname, deadline=deadline) as conn:
                        result = conn.query(descset.query)
                        report.points += map_result(result, descset.descriptors, sink, database=dbname)
                except DataSourceError as e:
                    logger.error("collect %s from database %s failed: %s; skip", descset.subsystem, dbname, e)
                    report.failures[(dbname, descset.subsystem)] = str(e)

    def _collect_single(self, sink: Sink, deadline: Deadline, report: CollectionReport):
        """Run sets without per-database rule once, over one connection."""
        sets = self.single_sets
        if not sets:
            return

        deadline.check()
        try:
            with self.connector.connect(deadline=deadline) as conn:
                for descset in sets:
                    deadline.check()
                    try:
                        result = conn.query(descset.query)
                    except DataSourceError as e:
                        logger.error("collect %s failed: %s; skip", descset.subsystem, e)
                        report.failures[(None, descset.subsystem)] = str(e)
                        continue
                    report.points += map_result(result, descset.descriptors, sink)
        except DataSourceError as e:
            logger.error("collect from default database failed: %s; skip", e)
            report.path_errors[PATH_SINGLE_DB] = str(e)
