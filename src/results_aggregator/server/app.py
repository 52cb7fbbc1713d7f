"""
Django application initialization.
"""

import os

from ..config import Config

SETTINGS_MODULE = "results_aggregator.server.settings"


def _export_settings(config: Config) -> None:
    """Pass config values to the Django settings module via environment."""
    # os.environ requires strings, so convert Path and bool values
    os.environ["AGGREGATOR_DB_PATH"] = str(config.storage.db_path)
    os.environ["AGGREGATOR_API_PREFIX"] = config.server.api_prefix
    os.environ["AGGREGATOR_AUTH_ENABLED"] = str(config.server.auth).lower()
    os.environ["AGGREGATOR_AUTH_DEBUG"] = str(config.server.auth_debug).lower()
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", SETTINGS_MODULE)


def get_wsgi_application(config: Config):
    """Get the Django WSGI application configured from our config."""
    _export_settings(config)

    from django.core.wsgi import get_wsgi_application as django_wsgi

    return django_wsgi()


def run_server(config: Config, host: str | None = None, port: int | None = None) -> None:
    """
    Run the Django development server.

    Args:
        config: Application config
        host: Host to bind to (overrides config)
        port: Port to listen on (overrides config)
    """
    _export_settings(config)

    import django

    django.setup()

    from django.core.management import execute_from_command_line

    host = host or config.server.host
    port = port or config.server.port

    print(f"\n🌐 Starting results aggregator at http://{host}:{port}/{config.server.api_prefix}")
    print(f"💾 Database: {config.storage.db_path}")
    print(f"🔐 Auth: {'debug (bearer)' if config.server.auth_debug else config.server.auth}")
    print("\nPress Ctrl+C to stop.\n")

    execute_from_command_line(
        [
            "manage.py",
            "runserver",
            f"{host}:{port}",
            "--noreload",  # Disable auto-reload for simpler operation
        ]
    )
