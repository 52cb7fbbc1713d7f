"""
Django settings for the REST API.
"""

import os

# Security settings
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key-change-in-production")
DEBUG = os.environ.get("DJANGO_DEBUG", "False").lower() == "true"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver,*").split(",")

# Application definition
# The API keeps no Django models; its data lives in the aggregator database.
INSTALLED_APPS: list[str] = []

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "results_aggregator.server.middleware.StorageErrorMiddleware",
    "results_aggregator.server.middleware.IdentityAuthenticationMiddleware",
]

ROOT_URLCONF = "results_aggregator.server.urls"

# Endpoints are exact paths, no slash redirects
APPEND_SLASH = False

DATABASES: dict = {}

USE_TZ = True

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
        },
        "results_aggregator": {
            "handlers": ["console"],
            "level": "INFO",
        },
    },
}

# Aggregator settings
# These are set at runtime from config (see app.py)
AGGREGATOR_DB_PATH = os.environ.get("AGGREGATOR_DB_PATH", "data/aggregator.db")
AGGREGATOR_API_PREFIX = os.environ.get("AGGREGATOR_API_PREFIX", "api/v1/")
AGGREGATOR_AUTH_ENABLED = os.environ.get("AGGREGATOR_AUTH_ENABLED", "true").lower() in (
    "true",
    "1",
    "yes",
)
# Bearer JWT instead of x-rh-identity; local development only
AGGREGATOR_AUTH_DEBUG = os.environ.get("AGGREGATOR_AUTH_DEBUG", "false").lower() in (
    "true",
    "1",
    "yes",
)
