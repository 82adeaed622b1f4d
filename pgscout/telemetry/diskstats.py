"""
DiskstatsSampler - block device I/O from /proc/diskstats.

Each line of /proc/diskstats becomes one row, so the generic row mapper turns
sibling counters (read/write/discard) into one metric with an `op` label.
Sector counts are converted to bytes, millisecond timers to seconds.
"""

import logging
from pathlib import Path
from typing import List, Mapping, Optional

from ..engine.compiler import compile_subsystem
from ..engine.deadline import Deadline
from ..engine.filters import Filter
from ..engine.mapper import Sink, map_result
from ..engine.orchestrator import CollectionReport, PATH_SINGLE_DB
from ..engine.units import SECTOR_SIZE
from ..model.descriptor import MetricDescriptor
from ..model.errors import ScrapeCancelled
from ..model.result import QueryResult, Row
from ..model.subsystem import SubsystemDefinition
from .builtin import MS_TO_SECONDS
from .sampler import Sampler

logger = logging.getLogger(__name__)


DISKSTATS_PATH = "/proc/diskstats"
DISK_NAMESPACE = "node"

# Field layout of /proc/diskstats (kernel Documentation/admin-guide/iostats.rst);
# older kernels stop after the first 14 fields, newer ones add discard and flush
DISKSTATS_COLUMNS = (
    "major", "minor", "device",
    "reads_completed", "reads_merged", "sectors_read", "time_reading_ms",
    "writes_completed", "writes_merged", "sectors_written", "time_writing_ms",
    "io_in_progress", "time_io_ms", "weighted_time_io_ms",
    "discards_completed", "discards_merged", "sectors_discarded", "time_discarding_ms",
    "flushes_completed", "time_flushing_ms",
)

DISK_SUBSYSTEM = SubsystemDefinition.from_dict("disk", {
    "query": DISKSTATS_PATH,
    "metrics": [
        {"name": "completed_total", "usage": "COUNTER", "labels": ["device"],
         "labeled_values": {"op": [
             "reads_completed/read", "writes_completed/write",
             "discards_completed/discard", "flushes_completed/flush",
         ]},
         "description": "Total number of I/O requests completed successfully."},
        {"name": "merged_total", "usage": "COUNTER", "labels": ["device"],
         "labeled_values": {"op": ["reads_merged/read", "writes_merged/write", "discards_merged/discard"]},
         "description": "Total number of adjacent I/O requests merged."},
        {"name": "bytes_total", "usage": "COUNTER", "labels": ["device"],
         "labeled_values": {"op": ["sectors_read/read", "sectors_written/write", "sectors_discarded/discard"]},
         "factor": SECTOR_SIZE,
         "description": "Total number of bytes processed by I/O requests."},
        {"name": "time_seconds_total", "usage": "COUNTER", "labels": ["device"],
         "labeled_values": {"op": [
             "time_reading_ms/read", "time_writing_ms/write",
             "time_discarding_ms/discard", "time_flushing_ms/flush",
         ]},
         "factor": MS_TO_SECONDS,
         "description": "Total time spent on I/O requests, in seconds."},
        {"name": "io_now", "usage": "GAUGE", "labels": ["device"], "value": "io_in_progress",
         "description": "Number of I/O requests currently in progress."},
        {"name": "io_time_seconds_total", "usage": "COUNTER", "labels": ["device"], "value": "time_io_ms",
         "factor": MS_TO_SECONDS,
         "description": "Total time spent doing I/O, in seconds."},
        {"name": "io_time_weighted_seconds_total", "usage": "COUNTER", "labels": ["device"],
         "value": "weighted_time_io_ms", "factor": MS_TO_SECONDS,
         "description": "Weighted time spent doing I/O, in seconds."},
    ],
})


def parse_diskstats(text: str, device_filter: Optional[Filter] = None) -> QueryResult:
    """Parse /proc/diskstats content into rows; missing trailing fields are NULL."""
    width = len(DISKSTATS_COLUMNS)
    rows: List[Row] = []

    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if len(fields) < 14:
            logger.warning("invalid input, too few fields in '%s'; skip", line.strip())
            continue
        if device_filter is not None and not device_filter.passes(fields[2]):
            continue
        cells: List[Optional[str]] = list(fields[:width])
        cells.extend([None] * (width - len(cells)))
        rows.append(tuple(cells))

    return QueryResult(colnames=DISKSTATS_COLUMNS, rows=rows)


class DiskstatsSampler(Sampler):
    """Host block device sampler."""

    def __init__(
        self,
        path: str = DISKSTATS_PATH,
        device_filter: Optional[Filter] = None,
        const_labels: Optional[Mapping[str, str]] = None,
    ):
        super().__init__("system/diskstats")
        self.path = Path(path)
        self.device_filter = device_filter
        self.descriptor_set = compile_subsystem(DISK_NAMESPACE, DISK_SUBSYSTEM, const_labels)

    @property
    def descriptors(self) -> List[MetricDescriptor]:
        return list(self.descriptor_set.descriptors)

    def update(self, sink: Sink, deadline: Optional[Deadline] = None) -> CollectionReport:
        report = CollectionReport()
        try:
            if deadline is not None:
                deadline.check()
            text = self.path.read_text()
        except ScrapeCancelled as e:
            report.cancelled = True
            logger.warning("%s interrupted: %s", self.name, e)
            return report
        except OSError as e:
            logger.error("read %s failed: %s; skip", self.path, e)
            report.path_errors[PATH_SINGLE_DB] = str(e)
            return report

        result = parse_diskstats(text, self.device_filter)
        report.points = map_result(result, self.descriptor_set.descriptors, sink)
        return report
