"""
CLI - Command-line interface for pgscout.

Commands:
    serve        Expose metrics over HTTP
    collect      Run one scrape and print it in exposition format
    check        Validate config and show compiled descriptor sets
    init-config  Write an example config file
"""

import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich import box

from . import __version__
from .config import Config, create_example_config
from .exporter import build_registry, render, serve
from .telemetry import build_samplers

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def setup_logging(level: str = "INFO"):
    """Route all pgscout logging through a rich handler on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pgscout",
        description="PostgreSQL & host metrics exporter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    pgscout serve -H 10.0.0.21 -U postgres
    pgscout collect -c pgscout.toml
    pgscout check -c pgscout.toml
    pgscout init-config

Environment Variables:
    PGPASSWORD            PostgreSQL password
    PGSCOUT_DB_HOST       PostgreSQL host (also _DB_PORT, _DB_USER, _DB_PASSWORD, _DB_NAME)
    PGSCOUT_DATABASES     Database allow pattern for per-database subsystems
        """,
    )
    parser.add_argument("--version", action="version", version=f"pgscout {__version__}")
    parser.add_argument(
        "-c", "--config",
        help="Config file (default: search ./pgscout.toml, ~/.config/pgscout, /etc/pgscout)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )

    # Database connection, shared by the commands that connect
    conn = argparse.ArgumentParser(add_help=False)
    conn.add_argument("-H", "--host", help="PostgreSQL host")
    conn.add_argument("-p", "--port", type=int, help="PostgreSQL port")
    conn.add_argument("-U", "--user", help="PostgreSQL user")
    conn.add_argument("-W", "--password", help="PostgreSQL password (or use PGPASSWORD env var)")
    conn.add_argument("-d", "--dbname", help="Bootstrap database name")
    conn.add_argument("--databases", help="Regex of databases visited by per-database subsystems")
    conn.add_argument("--scrape-timeout", type=float, help="Per-scrape budget in seconds")
    conn.add_argument("--no-sensitive-data", action="store_true", default=None,
                      help="Do not expose query texts")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    serve_p = sub.add_parser("serve", parents=[conn], help="Expose metrics over HTTP")
    serve_p.add_argument("--listen-address", help="Address to bind (default: 127.0.0.1)")
    serve_p.add_argument("--listen-port", type=int, help="Port to bind (default: 9890)")

    sub.add_parser("collect", parents=[conn], help="Run one scrape and print the result")
    sub.add_parser("check", parents=[conn], help="Validate config and show descriptor sets")

    init_p = sub.add_parser("init-config", help="Write an example config file")
    init_p.add_argument("path", nargs="?", default="pgscout.toml", help="Target path (default: pgscout.toml)")

    return parser.parse_args(argv)


def load_config(args) -> Config:
    config = Config.load(args.config)
    config.override_from_args(args)
    return config


def show_descriptors(samplers):
    """Print compiled descriptors as a table."""
    table = Table(title="Descriptor sets", box=box.SIMPLE)
    table.add_column("Sampler", style="cyan")
    table.add_column("Metric")
    table.add_column("Kind")
    table.add_column("Labels", style="dim")

    count = 0
    for sampler in samplers:
        for descriptor in sampler.descriptors:
            table.add_row(sampler.name, descriptor.name, descriptor.kind.value, ", ".join(descriptor.label_names))
            count += 1

    console.print(table)
    console.print(f"[green]{count} metrics from {len(samplers)} samplers[/]")


def cmd_check(config: Config) -> int:
    console.print(config.summary())
    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]✗[/] {error}")
        console.print(f"[red]{len(errors)} problem(s) found[/]")
    show_descriptors(build_samplers(config))
    return 1 if errors else 0


def cmd_collect(config: Config) -> int:
    registry = build_registry(build_samplers(config), timeout=config.exporter.scrape_timeout)
    sys.stdout.write(render(registry))
    return 0


def cmd_serve(config: Config) -> int:
    errors = config.validate()
    for error in errors:
        logger.warning("config: %s", error)
    logger.info("pgscout %s\n%s", __version__, config.summary())
    serve(
        build_samplers(config),
        config.exporter.listen_address,
        config.exporter.port,
        timeout=config.exporter.scrape_timeout,
    )
    return 0


def cmd_init_config(path: str) -> int:
    try:
        target = create_example_config(path)
    except FileExistsError as e:
        err_console.print(f"[red]{e}[/]")
        return 1
    console.print(f"[green]✓[/] Created {target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "init-config":
        return cmd_init_config(args.path)

    try:
        config = load_config(args)
    except FileNotFoundError as e:
        err_console.print(f"[red]{e}[/]")
        return 1

    if args.command == "check":
        return cmd_check(config)
    if args.command == "collect":
        return cmd_collect(config)
    return cmd_serve(config)
