"""
Unit normalization.

parse_unit() turns a Postgres-style unit string ("8kB", "200ms", "min")
into a multiplicative factor and a base unit (bytes or seconds).
normalize() applies a descriptor's factor right before a point is emitted.
"""

import re
from types import MappingProxyType
from typing import Mapping, Tuple

from ..model.errors import UnitParseError


BASE_BYTES = "bytes"
BASE_SECONDS = "seconds"

# suffix -> (factor, base unit); suffixes are case-sensitive
UNIT_FACTORS: Mapping[str, Tuple[float, str]] = MappingProxyType({
    "B": (1, BASE_BYTES),
    "kB": (1024, BASE_BYTES),
    "MB": (1024 ** 2, BASE_BYTES),
    "GB": (1024 ** 3, BASE_BYTES),
    "TB": (1024 ** 4, BASE_BYTES),
    "ms": (0.001, BASE_SECONDS),
    "s": (1, BASE_SECONDS),
    "min": (60, BASE_SECONDS),
    "h": (60 * 60, BASE_SECONDS),
    "d": (60 * 60 * 24, BASE_SECONDS),
})

# Linux block layer always counts in 512-byte sectors
SECTOR_SIZE = 512

_UNIT_RE = re.compile(r"^([0-9]*)([a-zA-Z]+)$")


def parse_unit(unit: str) -> Tuple[float, str]:
    """
    Split a unit string into factor and base unit.

    An empty unit is dimensionless: (1, "").

    Raises:
        UnitParseError: If the string is malformed or the suffix is unknown
    """
    if not unit:
        return 1.0, ""

    match = _UNIT_RE.match(unit)
    if not match:
        raise UnitParseError(f"invalid unit string: '{unit}'")

    multiplier, suffix = match.groups()
    if suffix not in UNIT_FACTORS:
        raise UnitParseError(f"unknown unit suffix: '{suffix}'")

    factor, base = UNIT_FACTORS[suffix]
    if multiplier:
        factor *= int(multiplier)

    return float(factor), base


def normalize(value: float, factor: float) -> float:
    """Apply a descriptor factor; 1 and 0 leave the value as is."""
    if factor and factor != 1:
        return value * factor
    return value
