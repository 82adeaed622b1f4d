"""
SettingsSampler - exposes pg_settings as labeled info metrics.

Numeric settings are normalized to base units (bytes, seconds) with the unit
parser, so `shared_buffers = 16384 (8kB)` is exposed as 134217728 bytes.
"""

import logging
from typing import List, Mapping, Optional, Tuple

from ..engine.compiler import compile_subsystem
from ..engine.deadline import Deadline
from ..engine.mapper import Sink, map_result
from ..engine.orchestrator import CollectionReport, PATH_SINGLE_DB
from ..engine.units import parse_unit
from ..model.descriptor import MetricDescriptor
from ..model.errors import DataSourceError, ScrapeCancelled, UnitParseError
from ..model.result import QueryResult, Row
from ..model.subsystem import SubsystemDefinition
from .sampler import Sampler

logger = logging.getLogger(__name__)


# For displayable names of GUC sources see GucSource_Names[] in guc.c
SETTINGS_QUERY = (
    "SELECT name, setting, unit, vartype FROM pg_show_all_settings() "
    "WHERE source IN ('default','configuration file','override','environment variable','command line','global')"
)

SETTINGS_SUBSYSTEM = SubsystemDefinition.from_dict("service", {
    "query": SETTINGS_QUERY,
    "metrics": [
        {"name": "settings_info", "usage": "GAUGE",
         "labels": ["name", "setting", "unit", "vartype", "source"], "value": "value",
         "description": "Labeled information about Postgres configuration settings."},
    ],
})

NORMALIZED_COLUMNS = ("name", "setting", "unit", "vartype", "source", "value")


def format_setting(value: float, vartype: str) -> str:
    """Render a normalized value: integers without fraction, reals without trailing zeroes."""
    if vartype == "integer" and value >= 1:
        return f"{value:.0f}"
    text = f"{value:.5f}".rstrip("0").rstrip(".")
    return text or "0"


def normalize_setting(setting: str, unit: str, vartype: str) -> Tuple[str, str, float]:
    """
    Normalize one pg_settings row.

    Returns:
        (setting text, base unit, numeric value)

    Raises:
        ValueError: If the value does not match its vartype
        UnitParseError: If the unit has an unknown suffix
    """
    if vartype in ("enum", "string"):
        return setting, unit, 0.0

    if vartype == "bool":
        if setting == "on":
            return setting, unit, 1.0
        if setting == "off":
            return setting, unit, 0.0
        raise ValueError(f"invalid bool value: '{setting}'")

    if vartype in ("integer", "real"):
        factor, base = parse_unit(unit)
        value = float(setting)
        # negative values are special markers (e.g. -1 = disabled), keep them as is
        if value >= 0:
            value *= factor
        return format_setting(value, vartype), base, value

    raise ValueError(f"unknown vartype: '{vartype}'")


class SettingsSampler(Sampler):
    """Sampler for pg_settings with per-row unit normalization."""

    def __init__(self, connector, namespace: str = "postgres", const_labels: Optional[Mapping[str, str]] = None):
        super().__init__("postgres/settings")
        self.connector = connector
        self.descriptor_set = compile_subsystem(namespace, SETTINGS_SUBSYSTEM, const_labels)

    @property
    def descriptors(self) -> List[MetricDescriptor]:
        return list(self.descriptor_set.descriptors)

    def normalize(self, result: QueryResult) -> QueryResult:
        """Rewrite raw pg_settings rows into normalized rows."""
        rows: List[Row] = []
        for row in result.rows:
            if len(row) != 4:
                logger.warning("invalid input, wrong number of columns; skip")
                continue
            name, setting, unit, vartype = (cell or "" for cell in row)
            try:
                text, base, value = normalize_setting(setting, unit, vartype)
            except (ValueError, UnitParseError) as e:
                logger.warning("normalize setting (name=%s, setting=%s, unit=%s, vartype=%s) failed: %s; skip",
                               name, setting, unit, vartype, e)
                continue
            rows.append((name, text, base, vartype, "main", repr(value)))
        return QueryResult(colnames=NORMALIZED_COLUMNS, rows=rows)

    def update(self, sink: Sink, deadline: Optional[Deadline] = None) -> CollectionReport:
        report = CollectionReport()
        try:
            with self.connector.connect(deadline=deadline) as conn:
                result = conn.query(self.descriptor_set.query)
        except ScrapeCancelled as e:
            logger.warning("%s interrupted: %s", self.name, e)
            report.cancelled = True
            return report
        except DataSourceError as e:
            logger.error("%s failed: %s; skip", self.name, e)
            report.path_errors[PATH_SINGLE_DB] = str(e)
            return report

        report.points = map_result(self.normalize(result), self.descriptor_set.descriptors, sink)
        return report
