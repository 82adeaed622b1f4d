"""
Engine - compiles subsystem definitions and turns query rows into metrics.

Control flow:
    resolve_collisions → compile_subsystems (once per sampler)
    CollectionOrchestrator.collect (once per scrape)
        → map_result (once per row × descriptor)
        → normalize (once per emitted point)
"""

from .compiler import build_fqname, compile_subsystem, compile_subsystems, definition_problems, validate_subsystems
from .resolver import resolve_collisions
from .mapper import ColumnIndex, DescriptorBinding, Sink, bind, map_result
from .units import parse_unit, normalize, SECTOR_SIZE
from .filters import Filter, compile_filters
from .deadline import Deadline
from .state import CollectState, CollectionStateMachine
from .orchestrator import CollectionOrchestrator, CollectionReport

__all__ = [
    "build_fqname",
    "compile_subsystem",
    "compile_subsystems",
    "definition_problems",
    "validate_subsystems",
    "resolve_collisions",
    "ColumnIndex",
    "DescriptorBinding",
    "Sink",
    "bind",
    "map_result",
    "parse_unit",
    "normalize",
    "SECTOR_SIZE",
    "Filter",
    "compile_filters",
    "Deadline",
    "CollectState",
    "CollectionStateMachine",
    "CollectionOrchestrator",
    "CollectionReport",
]
