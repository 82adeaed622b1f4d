"""
Samplers - one per subsystem family, each producing a fresh snapshot per scrape.

Samplers share no mutable state and own their connections, so the exporter
may run them concurrently.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..engine.deadline import Deadline
from ..engine.filters import Filter
from ..engine.mapper import Sink
from ..engine.orchestrator import CollectionOrchestrator, CollectionReport
from ..model.descriptor import DescriptorSet, MetricDescriptor

logger = logging.getLogger(__name__)


class Sampler(ABC):
    """Base class for all samplers."""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    @abstractmethod
    def descriptors(self) -> List[MetricDescriptor]:
        """Every descriptor the sampler may emit."""

    @abstractmethod
    def update(self, sink: Sink, deadline: Optional[Deadline] = None) -> CollectionReport:
        """Collect one snapshot and push its points into sink."""


class DescriptorSampler(Sampler):
    """Sampler backed by compiled descriptor sets and the orchestrator."""

    def __init__(
        self,
        name: str,
        descriptor_sets: Sequence[DescriptorSet],
        connector,
        database_filter: Optional[Filter] = None,
    ):
        super().__init__(name)
        self.descriptor_sets = list(descriptor_sets)
        self.orchestrator = CollectionOrchestrator(self.descriptor_sets, connector, database_filter)

    @property
    def descriptors(self) -> List[MetricDescriptor]:
        return [d for s in self.descriptor_sets for d in s.descriptors]

    def update(self, sink: Sink, deadline: Optional[Deadline] = None) -> CollectionReport:
        report = self.orchestrator.collect(sink, deadline)
        logger.debug("%s: %d points, %s", self.name, report.points, report.history)
        return report
