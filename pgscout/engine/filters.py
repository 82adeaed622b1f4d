"""
Include/exclude filters for sampled targets (devices, databases, ...).

Filters are keyed as "<sampler>/<label>", e.g. "diskstats/device".
Exclude has priority over include; a filter without patterns passes everything.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Pattern

logger = logging.getLogger(__name__)


# Default filters applied when the config does not define its own
DEFAULT_FILTERS: Mapping[str, Mapping[str, str]] = {
    "diskstats/device": {"exclude": r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"},
}


@dataclass(frozen=True)
class Filter:
    """Compiled include/exclude pair."""
    include: Optional[Pattern] = None
    exclude: Optional[Pattern] = None

    @classmethod
    def compile(cls, include: Optional[str] = None, exclude: Optional[str] = None) -> "Filter":
        """
        Compile pattern strings.

        Raises:
            re.error: If a pattern is not a valid regular expression
        """
        return cls(
            include=re.compile(include) if include else None,
            exclude=re.compile(exclude) if exclude else None,
        )

    def passes(self, target: str) -> bool:
        """Check that target satisfies the filter."""
        if self.exclude is not None and self.exclude.search(target):
            logger.debug("exclude target %s", target)
            return False
        if self.include is not None and not self.include.search(target):
            logger.debug("exclude target %s", target)
            return False
        return True


def compile_filters(raw: Mapping[str, Mapping[str, str]]) -> Dict[str, Filter]:
    """
    Merge user filters over defaults and compile them.

    Raises:
        re.error: If any pattern fails to compile
    """
    merged: Dict[str, Mapping[str, str]] = dict(DEFAULT_FILTERS)
    merged.update(raw)

    return {
        key: Filter.compile(include=spec.get("include"), exclude=spec.get("exclude"))
        for key, spec in merged.items()
    }
