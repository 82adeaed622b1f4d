"""
Mock components for testing pgscout.

These mocks use realistic statistics rows (golden_data.py) to exercise
compilation, mapping and collection without a PostgreSQL server.
"""

from .fake_postgres import FakeConnector, FakeSource
from .golden_data import (
    PLAIN_DEFINITION,
    BLOCKS_DEFINITION,
    TABLES_DEFINITION,
    XACT_DEFINITION,
    PLAIN_RESULT,
    BLOCKS_RESULT,
    TABLES_RESULT,
    XACT_RESULT,
    SETTINGS_RESULT,
    DISKSTATS_TEXT,
    definition,
)

__all__ = [
    'FakeConnector',
    'FakeSource',
    'PLAIN_DEFINITION',
    'BLOCKS_DEFINITION',
    'TABLES_DEFINITION',
    'XACT_DEFINITION',
    'PLAIN_RESULT',
    'BLOCKS_RESULT',
    'TABLES_RESULT',
    'XACT_RESULT',
    'SETTINGS_RESULT',
    'DISKSTATS_TEXT',
    'definition',
]
