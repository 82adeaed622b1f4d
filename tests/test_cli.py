"""cli.py tests"""

from unittest.mock import patch

import pytest

from pgscout.cli import cmd_check, cmd_serve
from pgscout.config import Config


INVALID_PATTERNS = [
    {"exporter": {"databases": "(app"}},
    {"filters": {"diskstats/device": {"include": "[sd"}}},
]


class TestInvalidPatterns:
    """Commands with invalid regex patterns in config"""

    @pytest.mark.parametrize("data", INVALID_PATTERNS)
    def test_check_reports_instead_of_crashing(self, data):
        config = Config._from_dict(data)

        assert cmd_check(config) == 1

    @pytest.mark.parametrize("data", INVALID_PATTERNS)
    @patch("pgscout.cli.serve")
    def test_serve_starts_with_remaining_samplers(self, mock_serve, data):
        config = Config._from_dict(data)

        assert cmd_serve(config) == 0

        samplers = mock_serve.call_args.args[0]
        assert "system/diskstats" in [s.name for s in samplers]
