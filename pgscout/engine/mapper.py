"""
Row mapper - converts query rows into metric points.

For each result set a ColumnIndex (column name -> positions) is built once,
and every descriptor is bound to it once. Mapping a row is then a matter of
reading the bound positions; no per-row column-name scanning.

Two mapping modes:
- plain value: one point per row from the `value` column
- labeled-value group: one point per group column, the column's label value
  appended to the plain labels

A point is emitted only when every label resolved and its value parsed.
Null/empty cells and unparsable numbers drop that single point.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..model.descriptor import MetricDescriptor, MetricPoint
from ..model.result import QueryResult, Row
from .units import normalize

logger = logging.getLogger(__name__)


Sink = Callable[[MetricPoint], None]


class ColumnIndex:
    """Column name -> positions lookup, exact name match."""

    def __init__(self, colnames: Sequence[str]):
        self._positions: Dict[str, List[int]] = {}
        for i, name in enumerate(colnames):
            self._positions.setdefault(name, []).append(i)

    def positions(self, name: str) -> Tuple[int, ...]:
        return tuple(self._positions.get(name, ()))

    def __contains__(self, name: str) -> bool:
        return name in self._positions


@dataclass(frozen=True)
class GroupSlot:
    """Bound column of a labeled-value group."""
    positions: Tuple[int, ...]
    label_value: str


class DescriptorBinding:
    """A descriptor bound to the column layout of one result set."""

    def __init__(self, descriptor: MetricDescriptor, index: ColumnIndex):
        self.descriptor = descriptor

        self.missing_labels = [name for name in descriptor.row_labels if name not in index]
        self.label_positions: Optional[Tuple[int, ...]] = None
        if not self.missing_labels:
            self.label_positions = tuple(index.positions(name)[0] for name in descriptor.row_labels)

        self.value_positions = index.positions(descriptor.value) if descriptor.value else ()
        self.groups = tuple(
            GroupSlot(positions=index.positions(column.source), label_value=column.label_value)
            for _, columns in descriptor.labeled_values
            for column in columns
        )

    @property
    def usable(self) -> bool:
        return self.label_positions is not None

    def map_row(self, row: Row, database: Optional[str] = None) -> Iterator[MetricPoint]:
        """Yield points for one row."""
        if self.label_positions is None:
            return

        labels: Tuple[str, ...] = tuple(row[i] or "" for i in self.label_positions)
        if self.descriptor.database_injected:
            labels = (database or "",) + labels

        if self.descriptor.value:
            value = first_value(row, self.value_positions)
            if value is not None:
                yield self._point(value, labels)
            else:
                logger.debug("metric %s: value is not collected, skip", self.descriptor.name)

        for slot in self.groups:
            value = first_value(row, slot.positions)
            if value is None:
                logger.debug("metric %s: value of '%s' is not collected, skip",
                             self.descriptor.name, slot.label_value)
                continue
            yield self._point(value, labels + (slot.label_value,))

    def _point(self, value: float, labels: Tuple[str, ...]) -> MetricPoint:
        return MetricPoint(
            descriptor=self.descriptor,
            value=normalize(value, self.descriptor.factor),
            label_values=labels,
        )


def first_value(row: Row, positions: Iterable[int]) -> Optional[float]:
    """First non-null cell among positions that parses as a number."""
    for i in positions:
        cell = row[i]
        if cell is None or cell == "":
            continue
        try:
            return float(cell)
        except ValueError:
            logger.debug("invalid input, parse '%s' failed; skip", cell)
    return None


def bind(descriptors: Iterable[MetricDescriptor], colnames: Sequence[str]) -> List[DescriptorBinding]:
    """Bind descriptors to a result layout, logging unresolvable labels once."""
    index = ColumnIndex(colnames)
    bindings = []
    for descriptor in descriptors:
        binding = DescriptorBinding(descriptor, index)
        if not binding.usable:
            logger.debug("metric %s: label columns %s not found in result; skip",
                         descriptor.name, binding.missing_labels)
        bindings.append(binding)
    return bindings


def map_result(
    result: QueryResult,
    descriptors: Iterable[MetricDescriptor],
    sink: Sink,
    database: Optional[str] = None,
) -> int:
    """
    Map every row of a result set for every descriptor.

    Args:
        result: Query result
        descriptors: Descriptors of one DescriptorSet
        sink: Receives each point
        database: Value of the injected database label, if any

    Returns:
        Number of points emitted
    """
    bindings = [b for b in bind(descriptors, result.colnames) if b.usable]
    count = 0
    for row in result.rows:
        for binding in bindings:
            for point in binding.map_row(row, database):
                sink(point)
                count += 1
    return count
