"""
Compiled metric descriptors and the points they produce.

MetricDescriptor - immutable metadata of one metric (name, kind, labels, factor)
DescriptorSet    - one compiled subsystem: query + descriptors + per-database rule
MetricPoint      - one emitted sample, handed to the sink and not retained
"""

from dataclasses import dataclass
from typing import Optional, Pattern, Tuple

from .subsystem import MetricKind


DATABASE_LABEL = "database"


@dataclass(frozen=True)
class LabeledColumn:
    """Source column of a labeled-value group and the label value it produces."""
    source: str
    label_value: str

    @classmethod
    def parse(cls, entry: str) -> "LabeledColumn":
        """Parse `source` or `source/label_value`."""
        source, sep, label_value = entry.partition("/")
        return cls(source=source, label_value=label_value if sep else source)


@dataclass(frozen=True)
class MetricDescriptor:
    """Compiled metric metadata."""
    name: str
    kind: MetricKind
    description: str
    label_names: Tuple[str, ...]
    value: Optional[str] = None
    labeled_values: Tuple[Tuple[str, Tuple[LabeledColumn, ...]], ...] = ()
    factor: float = 1.0
    # database name is injected as the first label value
    database_injected: bool = False
    const_labels: Tuple[Tuple[str, str], ...] = ()

    @property
    def row_labels(self) -> Tuple[str, ...]:
        """Labels whose values are read from the row's columns."""
        start = 1 if self.database_injected else 0
        stop = len(self.label_names) - len(self.labeled_values)
        return self.label_names[start:stop]


@dataclass(frozen=True)
class DescriptorSet:
    """One compiled subsystem."""
    subsystem: str
    query: str
    descriptors: Tuple[MetricDescriptor, ...]
    databases_re: Optional[Pattern] = None

    @property
    def is_multi_database(self) -> bool:
        return self.databases_re is not None

    def matches(self, database: str) -> bool:
        """True when the set should be collected from `database`."""
        return self.databases_re is not None and self.databases_re.search(database) is not None


@dataclass(frozen=True)
class MetricPoint:
    """One sample: descriptor, normalized value and label values."""
    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...]

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def kind(self) -> MetricKind:
        return self.descriptor.kind

    @property
    def label_names(self) -> Tuple[str, ...]:
        return self.descriptor.label_names

    def labels(self) -> dict:
        """All labels, constant labels included."""
        result = dict(self.descriptor.const_labels)
        result.update(zip(self.descriptor.label_names, self.label_values))
        return result
