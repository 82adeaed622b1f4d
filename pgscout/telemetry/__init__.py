"""
Telemetry - samplers producing metric points for one scrape.

Provides:
- Sampler / DescriptorSampler: base class and descriptor-driven sampler
- built-in PostgreSQL subsystems (activity, bgwriter, database, tables, indexes, statements)
- SettingsSampler: pg_settings with unit normalization
- DiskstatsSampler: /proc/diskstats block device stats
- build_samplers: assemble every enabled sampler from a Config
"""

from .sampler import Sampler, DescriptorSampler
from .builtin import builtin_subsystems, merged_builtins
from .settings import SettingsSampler, normalize_setting
from .diskstats import DiskstatsSampler, parse_diskstats
from .registry import build_samplers, CUSTOM_SAMPLER

__all__ = [
    "Sampler",
    "DescriptorSampler",
    "builtin_subsystems",
    "merged_builtins",
    "SettingsSampler",
    "normalize_setting",
    "DiskstatsSampler",
    "parse_diskstats",
    "build_samplers",
    "CUSTOM_SAMPLER",
]
