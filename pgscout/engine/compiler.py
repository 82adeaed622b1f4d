"""
Descriptor compiler - turns subsystem definitions into DescriptorSets.

Compilation is deterministic: the same definition always yields the same
query text, metric names and label ordering. A definition with a problem
(bad pattern, unknown usage, metric without a value source) raises
DefinitionError; compile_subsystems() logs it and skips that subsystem only.
"""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..model.descriptor import (
    DATABASE_LABEL,
    DescriptorSet,
    LabeledColumn,
    MetricDescriptor,
)
from ..model.errors import DefinitionError
from ..model.subsystem import MetricKind, MetricSpec, SubsystemDefinition

logger = logging.getLogger(__name__)


NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def build_fqname(namespace: str, subsystem: str, name: str) -> str:
    """Join non-empty name parts with underscores."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def definition_problems(definition: SubsystemDefinition) -> List[str]:
    """
    Check a definition without compiling it.

    Returns:
        List of problem messages (empty if the definition compiles)
    """
    problems = []

    if not NAME_RE.match(definition.name):
        problems.append(f"invalid subsystem name '{definition.name}'")

    if definition.databases:
        try:
            re.compile(definition.databases)
        except re.error as e:
            problems.append(f"invalid databases pattern '{definition.databases}': {e}")

    if definition.metrics and not definition.query.strip():
        problems.append("query is required when metrics are defined")

    seen = set()
    for spec in definition.metrics:
        problems.extend(_metric_problems(spec))
        if spec.short_name in seen:
            problems.append(f"metric '{spec.short_name}' is defined more than once")
        seen.add(spec.short_name)

    return problems


def _metric_problems(spec: MetricSpec) -> List[str]:
    problems = []
    name = spec.short_name

    if not NAME_RE.match(name):
        problems.append(f"invalid metric name '{name}'")
    if not spec.description:
        problems.append(f"metric '{name}': description is required")

    try:
        MetricKind.parse(spec.usage)
    except ValueError as e:
        problems.append(f"metric '{name}': {e}")

    if not spec.value and not spec.labeled_values:
        problems.append(f"metric '{name}': one of 'value' or 'labeled_values' is required")
    elif spec.value and spec.labeled_values:
        problems.append(f"metric '{name}': 'value' and 'labeled_values' are mutually exclusive")

    labels = list(spec.labels) + list(spec.group_keys)
    if len(set(labels)) != len(labels):
        problems.append(f"metric '{name}': duplicate label names {labels}")
    for label in labels:
        if not NAME_RE.match(label):
            problems.append(f"metric '{name}': invalid label name '{label}'")

    # every point carries exactly one group label value
    if len(spec.labeled_values) > 1:
        problems.append(f"metric '{name}': labeled_values supports a single label key, got {list(spec.group_keys)}")
    for key, columns in spec.labeled_values:
        if not columns:
            problems.append(f"metric '{name}': labeled_values '{key}' has no columns")

    return problems


def _label_names(spec: MetricSpec, per_database: bool) -> Tuple[Tuple[str, ...], bool]:
    """Final label list: [database] + plain labels + group keys."""
    inject = per_database and DATABASE_LABEL not in spec.labels + spec.group_keys
    names = ((DATABASE_LABEL,) if inject else ()) + tuple(spec.labels) + spec.group_keys
    return names, inject


def compile_subsystem(
    namespace: str,
    definition: SubsystemDefinition,
    const_labels: Optional[Mapping[str, str]] = None,
) -> DescriptorSet:
    """
    Compile one subsystem definition.

    Args:
        namespace: Metric namespace, e.g. "postgres"
        definition: Declarative subsystem
        const_labels: Labels attached to every descriptor

    Returns:
        DescriptorSet sharing the definition's query and database rule

    Raises:
        DefinitionError: If the definition cannot be compiled
    """
    problems = definition_problems(definition)
    if problems:
        raise DefinitionError(definition.name, "; ".join(problems))

    databases_re = re.compile(definition.databases) if definition.databases else None
    const = tuple(sorted((const_labels or {}).items()))

    descriptors = []
    for spec in definition.metrics:
        label_names, injected = _label_names(spec, databases_re is not None)
        descriptors.append(MetricDescriptor(
            name=build_fqname(namespace, definition.name, spec.short_name),
            kind=MetricKind.parse(spec.usage),
            description=spec.description,
            label_names=label_names,
            value=spec.value,
            labeled_values=tuple(
                (key, tuple(LabeledColumn.parse(col) for col in columns))
                for key, columns in spec.labeled_values
            ),
            factor=spec.factor,
            database_injected=injected,
            const_labels=const,
        ))

    return DescriptorSet(
        subsystem=definition.name,
        query=definition.query,
        descriptors=tuple(descriptors),
        databases_re=databases_re,
    )


def compile_subsystems(
    namespace: str,
    subsystems: Mapping[str, SubsystemDefinition],
    const_labels: Optional[Mapping[str, str]] = None,
) -> List[DescriptorSet]:
    """Compile all subsystems, skipping (and logging) the ones that fail."""
    sets = []
    for name in sorted(subsystems):
        try:
            sets.append(compile_subsystem(namespace, subsystems[name], const_labels))
        except DefinitionError as e:
            logger.warning("create metrics descriptors set failed: %s; skip", e)
    return sets


def validate_subsystems(subsystems: Iterable[SubsystemDefinition]) -> Dict[str, List[str]]:
    """Problems per subsystem name, for subsystems that have any."""
    result = {}
    for definition in subsystems:
        problems = definition_problems(definition)
        if problems:
            result[definition.name] = problems
    return result
