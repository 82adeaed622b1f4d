"""
Subsystem definitions - declarative input of the descriptor compiler.

A subsystem is one query plus the metrics extracted from its rows:

    [subsystems.activity]
    query = "SELECT datname AS database, xact_commit FROM pg_stat_database"

    [[subsystems.activity.metrics]]
    name = "xact_commit_total"
    usage = "COUNTER"
    labels = ["database"]
    value = "xact_commit"
    description = "Total number of committed transactions."

Definitions are immutable once loaded.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any, Tuple, Mapping


class MetricKind(str, Enum):
    """Metric value type."""
    COUNTER = "COUNTER"
    GAUGE = "GAUGE"

    @classmethod
    def parse(cls, usage: str) -> "MetricKind":
        """
        Map a declared usage string to a kind.

        Raises:
            ValueError: If usage is not COUNTER or GAUGE
        """
        normalized = (usage or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"unknown usage '{usage}', expected one of: COUNTER, GAUGE") from None


@dataclass(frozen=True)
class MetricSpec:
    """One metric extracted from a subsystem's query rows."""
    short_name: str
    usage: str
    description: str = ""
    labels: Tuple[str, ...] = ()
    value: Optional[str] = None
    # label key -> source columns, in declaration order
    labeled_values: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    factor: float = 1.0

    @property
    def group_keys(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.labeled_values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MetricSpec":
        """Create MetricSpec from a config-file mapping."""
        labeled = data.get("labeled_values") or {}
        return cls(
            short_name=data.get("name", data.get("short_name", "")),
            usage=data.get("usage", ""),
            description=data.get("description", ""),
            labels=tuple(data.get("labels") or ()),
            value=data.get("value") or None,
            labeled_values=tuple((key, tuple(cols)) for key, cols in labeled.items()),
            factor=float(data.get("factor", 1.0)),
        )


@dataclass(frozen=True)
class SubsystemDefinition:
    """
    Declarative subsystem: query text, optional per-database pattern, metrics.

    An empty `databases` pattern means the query runs once against the
    default database.
    """
    name: str
    query: str = ""
    databases: Optional[str] = None
    metrics: Tuple[MetricSpec, ...] = field(default_factory=tuple)

    @property
    def metric_names(self) -> List[str]:
        return [m.short_name for m in self.metrics]

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "SubsystemDefinition":
        """Create SubsystemDefinition from a config-file mapping."""
        return cls(
            name=name,
            query=data.get("query", ""),
            databases=data.get("databases") or None,
            metrics=tuple(MetricSpec.from_dict(m) for m in data.get("metrics") or ()),
        )


def subsystems_from_dict(data: Mapping[str, Mapping[str, Any]]) -> Dict[str, SubsystemDefinition]:
    """Parse a `{name: {query, databases, metrics}}` mapping."""
    return {name: SubsystemDefinition.from_dict(name, body) for name, body in data.items()}
