"""
Store - data-source adapters used by the orchestrator and samplers.
"""

from .postgres import ConnectionTarget, PostgresConnector, PostgresSource, to_text

__all__ = [
    "ConnectionTarget",
    "PostgresConnector",
    "PostgresSource",
    "to_text",
]
