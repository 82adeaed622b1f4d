"""
pgscout - PostgreSQL & host metrics extraction engine

Samples the internal state of a PostgreSQL service (and the host it runs on)
and turns it into labeled numeric time-series points for Prometheus scraping.

Every built-in sampler is a declarative subsystem definition compiled by the
same descriptor compiler; user-defined subsystems from the config file go
through the same path after collision resolution.

Usage:
    # As a module
    python -m pgscout serve -H localhost -U postgres

    # Programmatically
    from pgscout import Config, build_samplers

    config = Config.load("pgscout.toml")
    samplers = build_samplers(config)
    for sampler in samplers:
        sampler.update(sink=print)
"""

__version__ = "0.4.0"
__author__ = "pgscout developers"

# Model exports
from .model import (
    MetricKind,
    MetricSpec,
    SubsystemDefinition,
    MetricDescriptor,
    DescriptorSet,
    MetricPoint,
    QueryResult,
)

# Engine exports
from .engine import (
    compile_subsystem,
    compile_subsystems,
    resolve_collisions,
    map_result,
    parse_unit,
    CollectionOrchestrator,
    CollectionReport,
    Deadline,
)

# Config and samplers
from .config import Config
from .telemetry import build_samplers

__all__ = [
    # Version
    "__version__",
    # Model
    "MetricKind",
    "MetricSpec",
    "SubsystemDefinition",
    "MetricDescriptor",
    "DescriptorSet",
    "MetricPoint",
    "QueryResult",
    # Engine
    "compile_subsystem",
    "compile_subsystems",
    "resolve_collisions",
    "map_result",
    "parse_unit",
    "CollectionOrchestrator",
    "CollectionReport",
    "Deadline",
    # Config / samplers
    "Config",
    "build_samplers",
]
