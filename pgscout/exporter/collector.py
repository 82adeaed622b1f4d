"""
ScoutCollector - prometheus_client custom collector over pgscout samplers.

Every scrape runs all samplers concurrently (one thread each) under a shared
Deadline. When the scrape timeout passes, the cancel event is set, stragglers
get a short grace period, and whatever points they already produced are kept.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from ..engine.deadline import Deadline
from ..engine.orchestrator import CollectionReport
from ..model.descriptor import MetricPoint
from ..model.subsystem import MetricKind
from ..telemetry.sampler import Sampler

logger = logging.getLogger(__name__)


# Seconds a cancelled sampler gets to notice cancellation and return
CANCEL_GRACE = 1.0


@dataclass
class SamplerRun:
    """One sampler's part of a scrape."""
    sampler: Sampler
    points: List[MetricPoint] = field(default_factory=list)
    report: Optional[CollectionReport] = None
    error: Optional[str] = None
    duration: float = 0.0
    thread: Optional[threading.Thread] = None

    @property
    def up(self) -> bool:
        return self.error is None and self.report is not None and not self.report.path_errors

    def run(self, deadline: Deadline):
        started = time.monotonic()
        try:
            self.report = self.sampler.update(self.points.append, deadline)
        except Exception as e:
            logger.exception("sampler %s failed", self.sampler.name)
            self.error = str(e)
        finally:
            self.duration = time.monotonic() - started


def run_samplers(
    samplers: Sequence[Sampler],
    timeout: Optional[float],
    grace: float = CANCEL_GRACE,
) -> List[SamplerRun]:
    """
    Run samplers concurrently under one deadline.

    Args:
        samplers: Samplers to update
        timeout: Scrape budget in seconds (None for no limit)
        grace: Time given to samplers after cancellation

    Returns:
        One SamplerRun per sampler, in input order
    """
    cancel = threading.Event()
    deadline = Deadline(timeout=timeout, cancel_event=cancel)
    runs = [SamplerRun(sampler=s) for s in samplers]

    for run in runs:
        run.thread = threading.Thread(
            target=run.run, args=(deadline,), name=f"sampler-{run.sampler.name}", daemon=True
        )
        run.thread.start()

    for run in runs:
        run.thread.join(timeout=deadline.remaining())

    stragglers = [r for r in runs if r.thread.is_alive()]
    if stragglers:
        cancel.set()
        logger.warning("scrape timeout, cancel samplers: %s", ", ".join(r.sampler.name for r in stragglers))
        for run in stragglers:
            run.thread.join(timeout=grace)
            if run.thread.is_alive():
                run.error = "scrape deadline exceeded"

    return runs


def build_families(points: Iterable[MetricPoint]) -> List[Metric]:
    """Group points into metric families, one per descriptor name."""
    families: Dict[str, Metric] = {}

    for point in points:
        labels = point.labels()
        family = families.get(point.name)
        if family is None:
            cls = CounterMetricFamily if point.kind is MetricKind.COUNTER else GaugeMetricFamily
            family = cls(point.name, point.descriptor.description, labels=list(labels))
            families[point.name] = family
        family.add_metric(list(labels.values()), point.value)

    return list(families.values())


class ScoutCollector:
    """
    Custom collector for a prometheus_client CollectorRegistry.

    Usage:
        registry = CollectorRegistry()
        registry.register(ScoutCollector(samplers, timeout=10.0))
    """

    def __init__(self, samplers: Sequence[Sampler], timeout: Optional[float] = None, grace: float = CANCEL_GRACE):
        self.samplers = list(samplers)
        self.timeout = timeout
        self.grace = grace

    def collect(self) -> Iterator[Metric]:
        started = time.monotonic()
        runs = run_samplers(self.samplers, self.timeout, self.grace)

        points = [p for run in runs for p in list(run.points)]
        down = [run.sampler.name for run in runs if not run.up]
        logger.info("scrape finished: %d points from %d samplers in %.3fs%s", len(points), len(runs),
                    time.monotonic() - started, f"; down: {', '.join(down)}" if down else "")
        yield from build_families(points)

        up = GaugeMetricFamily("pgscout_sampler_up", "Sampler health: 1 when the last scrape succeeded.",
                               labels=["sampler"])
        duration = GaugeMetricFamily("pgscout_sampler_duration_seconds", "Time spent by the sampler, in seconds.",
                                     labels=["sampler"])
        for run in runs:
            up.add_metric([run.sampler.name], 1.0 if run.up else 0.0)
            duration.add_metric([run.sampler.name], run.duration)
        yield up
        yield duration
