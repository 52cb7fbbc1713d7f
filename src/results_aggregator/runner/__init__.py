"""
CLI runner module.

Provides commands:
- migration: Show or change the database schema version
- start-service: Run the REST API
- print-config: Show effective configuration
- print-version-info: Show version
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
