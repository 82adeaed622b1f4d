"""
Exporter - Prometheus exposition of sampler output.
"""

from .collector import ScoutCollector, SamplerRun, run_samplers, build_families
from .server import build_registry, render, serve

__all__ = [
    "ScoutCollector",
    "SamplerRun",
    "run_samplers",
    "build_families",
    "build_registry",
    "render",
    "serve",
]
