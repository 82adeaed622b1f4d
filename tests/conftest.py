"""Shared test fixtures"""

from typing import List

import pytest

from pgscout.model.descriptor import MetricPoint


@pytest.fixture
def points() -> List[MetricPoint]:
    """List used as a sink: pass `points.append`"""
    return []
