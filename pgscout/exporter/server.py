"""
HTTP exposition for pgscout metrics.

Provides:
- build_registry: CollectorRegistry with a ScoutCollector
- render: one scrape in Prometheus text format
- serve: blocking HTTP listener
"""

import logging
import threading
from typing import Optional, Sequence

from prometheus_client import CollectorRegistry, generate_latest, start_http_server

from ..telemetry.sampler import Sampler
from .collector import ScoutCollector

logger = logging.getLogger(__name__)


def build_registry(samplers: Sequence[Sampler], timeout: Optional[float] = None) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(ScoutCollector(samplers, timeout=timeout))
    return registry


def render(registry: CollectorRegistry) -> str:
    """Run one scrape and return the exposition text."""
    return generate_latest(registry).decode("utf-8")


def serve(
    samplers: Sequence[Sampler],
    listen_address: str,
    port: int,
    timeout: Optional[float] = None,
    stop_event: Optional[threading.Event] = None,
):
    """
    Expose metrics over HTTP until stopped.

    Args:
        samplers: Samplers to run on each scrape
        listen_address: Address to bind
        port: Port to bind
        timeout: Per-scrape budget in seconds
        stop_event: Set to stop serving (Ctrl-C also stops)
    """
    registry = build_registry(samplers, timeout)
    server, thread = start_http_server(port, addr=listen_address, registry=registry)
    logger.info("accepting requests on http://%s:%d/metrics", listen_address, port)

    stop_event = stop_event or threading.Event()
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    finally:
        server.shutdown()
        thread.join(timeout=5)
