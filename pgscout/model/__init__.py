"""
Data model of the extraction engine.

Declarative input:
- SubsystemDefinition, MetricSpec, MetricKind

Compiled / runtime:
- MetricDescriptor, DescriptorSet, MetricPoint, QueryResult
"""

from .subsystem import MetricKind, MetricSpec, SubsystemDefinition, subsystems_from_dict
from .descriptor import (
    DATABASE_LABEL,
    LabeledColumn,
    MetricDescriptor,
    DescriptorSet,
    MetricPoint,
)
from .result import QueryResult, Row
from .errors import (
    PgScoutError,
    DefinitionError,
    UnitParseError,
    DataSourceError,
    ConnectError,
    QueryError,
    DiscoveryError,
    ScrapeCancelled,
)

__all__ = [
    "MetricKind",
    "MetricSpec",
    "SubsystemDefinition",
    "subsystems_from_dict",
    "DATABASE_LABEL",
    "LabeledColumn",
    "MetricDescriptor",
    "DescriptorSet",
    "MetricPoint",
    "QueryResult",
    "Row",
    "PgScoutError",
    "DefinitionError",
    "UnitParseError",
    "DataSourceError",
    "ConnectError",
    "QueryError",
    "DiscoveryError",
    "ScrapeCancelled",
]
