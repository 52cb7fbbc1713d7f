"""
CLI main entry point.
"""

import argparse
import json
import logging
import sqlite3
import sys
from dataclasses import asdict
from pathlib import Path

import yaml

from .. import __version__
from ..config import Config, ConfigValidationError, load_config
from ..migration import MigrationError
from ..storage import Storage, StorageError

logger = logging.getLogger(__name__)

LATEST_VERSION = "latest"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="results-aggregator",
        description="Store cluster analysis reports and serve them over a REST API",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # migration command
    migration_parser = subparsers.add_parser(
        "migration",
        help="Show the database schema version, or migrate to another version",
    )
    migration_parser.add_argument(
        "version",
        nargs="?",
        default=None,
        help="Target version number or 'latest' (omit to only print versions)",
    )

    # start-service command
    service_parser = subparsers.add_parser("start-service", help="Start the REST API service")
    service_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: from config)",
    )
    service_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config)",
    )

    subparsers.add_parser("print-config", help="Print the effective configuration as JSON")
    subparsers.add_parser("print-version-info", help="Print version information")

    return parser


def parse_target_version(value: str, max_version: int) -> int:
    """Turn a CLI version argument into a version number."""
    if value == LATEST_VERSION:
        return max_version
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"unable to parse target version '{value}' (expected number or 'latest')")


def cmd_migration(config: Config, version: str | None) -> int:
    """Print or change the database schema version."""
    storage = None
    try:
        storage = Storage(config.storage.db_path)
        storage.migrator.init_info_table()
        current = storage.get_migration_version()
        max_version = storage.get_max_version()

        if version is None:
            print(f"Current DB version: {current}")
            print(f"Maximum available version: {max_version}")
            return 0

        target = parse_target_version(version, max_version)
        storage.migrate_to(target)
        print(f"✓ Database migrated from version {current} to {target}")
        return 0

    except (MigrationError, sqlite3.Error, OSError, ValueError) as e:
        logger.error(f"Migration failed: {e}")
        print(f"❌ Migration failed: {e}")
        return 1
    finally:
        if storage is not None:
            storage.close()


def cmd_start_service(config: Config, host: str | None, port: int | None) -> int:
    """Verify the database schema and run the REST API."""
    storage = None
    try:
        storage = Storage(config.storage.db_path)
        storage.init(auto_migrate=config.storage.auto_migrate)
    except (StorageError, MigrationError, sqlite3.Error, OSError) as e:
        logger.error(f"Unable to initialize storage: {e}")
        print(f"❌ Unable to initialize storage: {e}")
        return 1
    finally:
        if storage is not None:
            storage.close()

    from ..server.app import run_server

    run_server(config, host=host, port=port)
    return 0


def cmd_print_config(config: Config) -> int:
    print(json.dumps(asdict(config), indent=2, default=str))
    return 0


def cmd_print_version_info() -> int:
    print(f"results-aggregator {__version__}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "print-version-info":
        return cmd_print_version_info()

    # Load config
    try:
        config = load_config(parsed.config)
        config.validate_or_raise()
    except (ConfigValidationError, OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "migration":
        return cmd_migration(config, parsed.version)
    elif parsed.command == "start-service":
        return cmd_start_service(config, parsed.host, parsed.port)
    elif parsed.command == "print-config":
        return cmd_print_config(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
