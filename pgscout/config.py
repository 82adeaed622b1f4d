"""
Configuration management for pgscout.

Supports:
- TOML config files
- Environment variables
- Command-line overrides
- Sensible defaults

Priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Config file
4. Defaults
"""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Mapping

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11

from .engine.compiler import validate_subsystems
from .model.subsystem import SubsystemDefinition, subsystems_from_dict
from .store.postgres import ConnectionTarget


# Default config file locations (searched in order)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / "pgscout.toml",
    Path.home() / ".config" / "pgscout" / "pgscout.toml",
    Path("/etc/pgscout/pgscout.toml"),
]

ENV_PREFIX = "PGSCOUT_"

# Sampler names accepted by `disable_collectors`
KNOWN_COLLECTORS = (
    "postgres/activity",
    "postgres/bgwriter",
    "postgres/database",
    "postgres/tables",
    "postgres/indexes",
    "postgres/statements",
    "postgres/settings",
    "postgres/custom",
    "system/diskstats",
)


@dataclass
class DatabaseConfig:
    """Base connection target."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"
    connect_timeout: int = 10

    def target(self) -> ConnectionTarget:
        return ConnectionTarget(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            dbname=self.name,
            connect_timeout=self.connect_timeout,
        )


@dataclass
class ExporterConfig:
    """Exposition and collection settings."""
    listen_address: str = "127.0.0.1"
    port: int = 9890
    namespace: str = "postgres"
    scrape_timeout: float = 10.0
    const_labels: Dict[str, str] = field(default_factory=dict)
    # global database-name allow pattern for multi-database collection
    databases: Optional[str] = None
    no_sensitive_data: bool = False
    disable_collectors: List[str] = field(default_factory=list)
    diskstats_path: str = "/proc/diskstats"


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    exporter: ExporterConfig = field(default_factory=ExporterConfig)
    filters: Dict[str, Dict[str, str]] = field(default_factory=dict)
    subsystems: Dict[str, SubsystemDefinition] = field(default_factory=dict)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Load configuration from file and environment.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Config instance with loaded values
        """
        config = cls()

        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        config.apply_env(os.environ if environ is None else environ)
        return config

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        # Database
        if "database" in data:
            db = data["database"]
            config.database = DatabaseConfig(
                host=db.get("host", config.database.host),
                port=int(db.get("port", config.database.port)),
                user=db.get("user", config.database.user),
                password=db.get("password", config.database.password),
                name=db.get("name", config.database.name),
                connect_timeout=int(db.get("connect_timeout", config.database.connect_timeout)),
            )

        # Exporter
        if "exporter" in data:
            exp = data["exporter"]
            config.exporter = ExporterConfig(
                listen_address=exp.get("listen_address", config.exporter.listen_address),
                port=int(exp.get("port", config.exporter.port)),
                namespace=exp.get("namespace", config.exporter.namespace),
                scrape_timeout=float(exp.get("scrape_timeout", config.exporter.scrape_timeout)),
                const_labels={str(k): str(v) for k, v in exp.get("const_labels", {}).items()},
                databases=exp.get("databases") or None,
                no_sensitive_data=bool(exp.get("no_sensitive_data", False)),
                disable_collectors=list(exp.get("disable_collectors", [])),
                diskstats_path=exp.get("diskstats_path", config.exporter.diskstats_path),
            )

        # Filters
        if "filters" in data:
            config.filters = {key: dict(spec) for key, spec in data["filters"].items()}

        # User-defined subsystems
        if "subsystems" in data:
            config.subsystems = subsystems_from_dict(data["subsystems"])

        return config

    def apply_env(self, environ: Mapping[str, str]) -> "Config":
        """Override values from PGSCOUT_* variables (and PGPASSWORD)."""
        if environ.get("PGPASSWORD") and not self.database.password:
            self.database.password = environ["PGPASSWORD"]

        env = {k[len(ENV_PREFIX):]: v for k, v in environ.items() if k.startswith(ENV_PREFIX)}

        if env.get("DB_HOST"):
            self.database.host = env["DB_HOST"]
        if env.get("DB_PORT"):
            self.database.port = int(env["DB_PORT"])
        if env.get("DB_USER"):
            self.database.user = env["DB_USER"]
        if env.get("DB_PASSWORD"):
            self.database.password = env["DB_PASSWORD"]
        if env.get("DB_NAME"):
            self.database.name = env["DB_NAME"]
        if env.get("LISTEN_ADDRESS"):
            self.exporter.listen_address = env["LISTEN_ADDRESS"]
        if env.get("PORT"):
            self.exporter.port = int(env["PORT"])
        if env.get("SCRAPE_TIMEOUT"):
            self.exporter.scrape_timeout = float(env["SCRAPE_TIMEOUT"])
        if env.get("DATABASES"):
            self.exporter.databases = env["DATABASES"]
        if env.get("NO_SENSITIVE_DATA"):
            self.exporter.no_sensitive_data = env["NO_SENSITIVE_DATA"].lower() in ("1", "true", "yes", "on")

        return self

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        if getattr(args, "host", None):
            self.database.host = args.host
        if getattr(args, "port", None):
            self.database.port = args.port
        if getattr(args, "user", None):
            self.database.user = args.user
        if getattr(args, "password", None):
            self.database.password = args.password
        if getattr(args, "dbname", None):
            self.database.name = args.dbname

        if getattr(args, "listen_address", None):
            self.exporter.listen_address = args.listen_address
        if getattr(args, "listen_port", None):
            self.exporter.port = args.listen_port
        if getattr(args, "scrape_timeout", None):
            self.exporter.scrape_timeout = args.scrape_timeout
        if getattr(args, "databases", None):
            self.exporter.databases = args.databases
        if getattr(args, "no_sensitive_data", None):
            self.exporter.no_sensitive_data = True

        return self

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.database.host:
            errors.append("Database host is required")
        if not self.database.user:
            errors.append("Database user is required")
        if not 0 < self.exporter.port < 65536:
            errors.append(f"Listen port out of range: {self.exporter.port}")
        if self.exporter.scrape_timeout <= 0:
            errors.append("Scrape timeout must be positive")

        if self.exporter.databases:
            try:
                re.compile(self.exporter.databases)
            except re.error as e:
                errors.append(f"Invalid databases pattern '{self.exporter.databases}': {e}")

        for name in self.exporter.disable_collectors:
            if name not in KNOWN_COLLECTORS:
                errors.append(f"Unknown collector in disable_collectors: {name}")

        for key, spec in self.filters.items():
            for kind in ("include", "exclude"):
                if spec.get(kind):
                    try:
                        re.compile(spec[kind])
                    except re.error as e:
                        errors.append(f"Invalid {kind} pattern for filter '{key}': {e}")

        for name, problems in validate_subsystems(self.subsystems.values()).items():
            for problem in problems:
                errors.append(f"Subsystem '{name}': {problem}")

        return errors

    def collector_enabled(self, name: str) -> bool:
        return name not in self.exporter.disable_collectors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        lines.append(f"Database: {self.database.user}@{self.database.host}:{self.database.port}/{self.database.name}")
        lines.append(f"Listen: {self.exporter.listen_address}:{self.exporter.port}")
        lines.append(f"Scrape timeout: {self.exporter.scrape_timeout}s")
        if self.exporter.databases:
            lines.append(f"Databases: {self.exporter.databases}")
        lines.append(f"User subsystems: {len(self.subsystems)}")
        if self.exporter.disable_collectors:
            lines.append(f"Disabled: {', '.join(self.exporter.disable_collectors)}")

        return "\n".join(lines)


EXAMPLE_CONFIG = """# pgscout Configuration

[database]
host = "localhost"
port = 5432
user = "postgres"
password = ""
name = "postgres"

[exporter]
listen_address = "127.0.0.1"
port = 9890
scrape_timeout = 10.0
no_sensitive_data = false
# databases = "^(app|billing)$"
# disable_collectors = ["postgres/statements"]

[exporter.const_labels]
# cluster = "main"

[filters."diskstats/device"]
exclude = '^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\\d+n\\d+p)\\d+$'

[subsystems.orders]
databases = "^shop$"
query = "SELECT status, count(*) AS orders, sum(amount) AS amount FROM orders GROUP BY status"

[[subsystems.orders.metrics]]
name = "count"
usage = "GAUGE"
labels = ["status"]
value = "orders"
description = "Number of orders by status."

[[subsystems.orders.metrics]]
name = "amount"
usage = "GAUGE"
labels = ["status"]
value = "amount"
description = "Total amount of orders by status."
"""


def create_example_config(path: str = "pgscout.toml") -> Path:
    """Create example config file."""
    target = Path(path)

    if target.exists():
        raise FileExistsError(f"Config file already exists: {path}")

    target.write_text(EXAMPLE_CONFIG)
    return target
