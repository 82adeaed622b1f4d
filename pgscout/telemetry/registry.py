"""
Sampler registry - builds the set of samplers a scrape runs.

Built-in subsystems are compiled first; user subsystems go through the
collision resolver and are compiled into one `postgres/custom` sampler.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional

from ..config import Config
from ..engine.compiler import compile_subsystem, compile_subsystems
from ..engine.filters import Filter, compile_filters
from ..engine.resolver import resolve_collisions
from ..model.errors import DefinitionError
from ..model.subsystem import SubsystemDefinition
from ..store.postgres import PostgresConnector
from .builtin import builtin_subsystems, merged_builtins
from .diskstats import DISK_NAMESPACE, DISK_SUBSYSTEM, DiskstatsSampler
from .sampler import DescriptorSampler, Sampler
from .settings import SETTINGS_SUBSYSTEM, SettingsSampler

logger = logging.getLogger(__name__)


CUSTOM_SAMPLER = "postgres/custom"


def reserved_subsystems(
    namespace: str,
    builtins: Mapping[str, Mapping[str, SubsystemDefinition]],
) -> Dict[str, SubsystemDefinition]:
    """
    Every built-in subsystem whose metrics share the user namespace.

    User subsystems are compiled under `namespace`; the settings subsystem
    always is too, the disk subsystem only when the namespace is `node`.
    """
    reserved = merged_builtins(builtins)
    reserved[SETTINGS_SUBSYSTEM.name] = SETTINGS_SUBSYSTEM
    if namespace == DISK_NAMESPACE:
        reserved[DISK_SUBSYSTEM.name] = DISK_SUBSYSTEM
    return reserved


def database_filter(pattern: Optional[str]) -> Optional[Filter]:
    """Compile the global databases allow pattern; an invalid one is ignored."""
    if not pattern:
        return None
    try:
        return Filter.compile(include=pattern)
    except re.error as e:
        logger.error("invalid databases pattern '%s': %s; collect from all databases", pattern, e)
        return None


def device_filter(raw: Mapping[str, Mapping[str, str]]) -> Optional[Filter]:
    """Compile the diskstats device filter; invalid user filters fall back to defaults."""
    try:
        filters = compile_filters(raw)
    except re.error as e:
        logger.error("invalid filter pattern: %s; use default filters", e)
        filters = compile_filters({})
    return filters.get("diskstats/device")


def build_samplers(config: Config, connector=None) -> List[Sampler]:
    """
    Create every enabled sampler for the given configuration.

    Args:
        config: Loaded configuration
        connector: Connection factory; defaults to a PostgresConnector for
            the configured base target

    Returns:
        Samplers in a stable order (built-ins, custom, settings, diskstats)
    """
    exp = config.exporter
    connector = connector or PostgresConnector(config.database.target())
    const_labels = exp.const_labels
    db_filter = database_filter(exp.databases)

    builtins = builtin_subsystems(exp.no_sensitive_data)
    samplers: List[Sampler] = []

    for name, subsystems in builtins.items():
        if not config.collector_enabled(name):
            logger.info("sampler %s disabled", name)
            continue
        sets = []
        for subsystem in subsystems.values():
            try:
                sets.append(compile_subsystem(exp.namespace, subsystem, const_labels))
            except DefinitionError as e:
                logger.error("built-in sampler %s: %s; skip", name, e)
        samplers.append(DescriptorSampler(name, sets, connector, db_filter))

    if config.subsystems and config.collector_enabled(CUSTOM_SAMPLER):
        survivors, _ = resolve_collisions(reserved_subsystems(exp.namespace, builtins), config.subsystems)
        sets = compile_subsystems(exp.namespace, survivors, const_labels)
        if sets:
            samplers.append(DescriptorSampler(CUSTOM_SAMPLER, sets, connector, db_filter))

    if config.collector_enabled("postgres/settings"):
        samplers.append(SettingsSampler(connector, exp.namespace, const_labels))

    if config.collector_enabled("system/diskstats"):
        samplers.append(DiskstatsSampler(exp.diskstats_path, device_filter(config.filters), const_labels))

    logger.debug("samplers: %s", ", ".join(s.name for s in samplers))
    return samplers
