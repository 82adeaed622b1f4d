"""config.py tests"""

import argparse

import pytest

from pgscout.config import Config, EXAMPLE_CONFIG, create_example_config


CONFIG_TOML = """
[database]
host = "db.internal"
port = 6432
user = "monitor"
name = "postgres"

[exporter]
port = 9999
scrape_timeout = 5
databases = "^(app|billing)$"
disable_collectors = ["postgres/statements"]

[exporter.const_labels]
cluster = "main"

[filters."diskstats/device"]
include = "^nvme"

[subsystems.orders]
databases = "^app$"
query = "SELECT status, count(*) AS orders FROM orders GROUP BY status"

[[subsystems.orders.metrics]]
name = "count"
usage = "GAUGE"
labels = ["status"]
value = "orders"
description = "Number of orders by status."

[[subsystems.orders.metrics]]
name = "volume"
usage = "GAUGE"
labeled_values = { kind = ["small/s", "large/l"] }
description = "Order volume by kind."
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "pgscout.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestLoad:
    """Config.load"""

    def test_load_from_file(self, config_file):
        config = Config.load(str(config_file), environ={})

        assert config.database.host == "db.internal"
        assert config.database.port == 6432
        assert config.database.user == "monitor"
        assert config.exporter.port == 9999
        assert config.exporter.scrape_timeout == 5.0
        assert config.exporter.databases == "^(app|billing)$"
        assert config.exporter.const_labels == {"cluster": "main"}
        assert config.exporter.disable_collectors == ["postgres/statements"]
        assert config.filters == {"diskstats/device": {"include": "^nvme"}}

    def test_subsystems_parsed(self, config_file):
        config = Config.load(str(config_file), environ={})

        orders = config.subsystems["orders"]
        assert orders.databases == "^app$"
        assert orders.metric_names == ["count", "volume"]
        assert orders.metrics[0].labels == ("status",)
        assert orders.metrics[1].labeled_values == (("kind", ("small/s", "large/l")),)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.load(str(tmp_path / "nope.toml"), environ={})

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.setattr(Config, "_find_config_file", classmethod(lambda cls: None))

        config = Config.load(environ={})

        assert config.database.host == "localhost"
        assert config.exporter.port == 9890
        assert config.exporter.namespace == "postgres"
        assert config.subsystems == {}

    def test_database_target(self, config_file):
        target = Config.load(str(config_file), environ={}).database.target()

        assert target.display() == "monitor@db.internal:6432"
        assert target.dbname == "postgres"

    def test_example_config_loads(self, tmp_path):
        path = create_example_config(str(tmp_path / "example.toml"))
        config = Config.load(str(path), environ={})

        assert config.validate() == []
        assert "orders" in config.subsystems
        assert path.read_text() == EXAMPLE_CONFIG

    def test_example_config_not_overwritten(self, config_file):
        with pytest.raises(FileExistsError):
            create_example_config(str(config_file))


class TestOverrides:
    """Environment and argument overrides"""

    def test_env_overrides_file(self, config_file):
        config = Config.load(str(config_file), environ={
            "PGSCOUT_DB_HOST": "other",
            "PGSCOUT_PORT": "9100",
            "PGSCOUT_NO_SENSITIVE_DATA": "true",
            "PGPASSWORD": "secret",
        })

        assert config.database.host == "other"
        assert config.exporter.port == 9100
        assert config.exporter.no_sensitive_data
        assert config.database.password == "secret"

    def test_args_override_env(self, config_file):
        config = Config.load(str(config_file), environ={"PGSCOUT_DB_HOST": "other"})
        args = argparse.Namespace(host="cli-host", port=None, user=None, password=None, dbname=None,
                                  listen_address=None, listen_port=9200, scrape_timeout=None,
                                  databases=None, no_sensitive_data=None)

        config.override_from_args(args)

        assert config.database.host == "cli-host"
        assert config.database.port == 6432
        assert config.exporter.port == 9200


class TestValidate:
    """Config.validate"""

    def test_valid(self, config_file):
        assert Config.load(str(config_file), environ={}).validate() == []

    def test_collects_all_problems(self):
        config = Config._from_dict({
            "exporter": {
                "port": 0,
                "scrape_timeout": 0,
                "databases": "([",
                "disable_collectors": ["postgres/unknown"],
            },
            "filters": {"diskstats/device": {"exclude": "(["}},
            "subsystems": {
                "bad": {"query": "SELECT 1", "metrics": [
                    {"name": "m", "usage": "HISTOGRAM", "value": "v", "description": "x"},
                ]},
            },
        })

        errors = config.validate()

        assert any("Listen port out of range" in e for e in errors)
        assert any("Scrape timeout" in e for e in errors)
        assert any("Invalid databases pattern" in e for e in errors)
        assert any("postgres/unknown" in e for e in errors)
        assert any("filter 'diskstats/device'" in e for e in errors)
        assert any(e.startswith("Subsystem 'bad'") and "unknown usage" in e for e in errors)

    def test_summary(self, config_file):
        summary = Config.load(str(config_file), environ={}).summary()

        assert "monitor@db.internal:6432/postgres" in summary
        assert "User subsystems: 1" in summary
        assert "Disabled: postgres/statements" in summary
