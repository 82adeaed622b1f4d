"""
Collision resolver - keeps metric names globally unique.

A user-defined subsystem that shares its name with a built-in subsystem and
redefines any of its metrics is dropped entirely. Built-in subsystems are
never touched.
"""

import logging
from typing import Dict, List, Mapping, Tuple

from ..model.subsystem import SubsystemDefinition

logger = logging.getLogger(__name__)


def resolve_collisions(
    builtin: Mapping[str, SubsystemDefinition],
    user: Mapping[str, SubsystemDefinition],
) -> Tuple[Dict[str, SubsystemDefinition], List[str]]:
    """
    Remove user subsystems colliding with built-in ones.

    Args:
        builtin: Built-in subsystems keyed by subsystem name
        user: User-defined subsystems keyed by subsystem name

    Returns:
        (surviving user subsystems, warning messages)
    """
    survivors: Dict[str, SubsystemDefinition] = {}
    warnings: List[str] = []

    for name, definition in user.items():
        base = builtin.get(name)
        if base is not None:
            clashes = sorted(set(definition.metric_names) & set(base.metric_names))
            if clashes:
                message = (
                    f"user-defined subsystem '{name}' redefines built-in metrics "
                    f"{', '.join(clashes)}; subsystem dropped"
                )
                logger.warning(message)
                warnings.append(message)
                continue
        survivors[name] = definition

    return survivors, warnings
