"""
Request middleware.

Authentication runs after URL resolution (process_view), so unknown paths
still get a 404 and public endpoints are skipped by URL name.
"""

import logging
import sqlite3

from django.conf import settings

from ..migration import MigrationError
from ..storage import StorageError
from .auth import AuthenticationError, identity_from_bearer, identity_from_header
from .responses import send_error, send_forbidden

logger = logging.getLogger(__name__)

# Endpoints reachable without an identity
NO_AUTH_URL_NAMES = frozenset({"main", "openapi"})


class IdentityAuthenticationMiddleware:
    """Attach the caller's Identity to request.identity or reject with 403."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.identity = None
        return self.get_response(request)

    def process_view(self, request, view_func, view_args, view_kwargs):
        if not getattr(settings, "AGGREGATOR_AUTH_ENABLED", True):
            return None

        match = request.resolver_match
        if match is not None and match.url_name in NO_AUTH_URL_NAMES:
            return None

        try:
            if getattr(settings, "AGGREGATOR_AUTH_DEBUG", False):
                identity = identity_from_bearer(request.headers.get("Authorization"))
            else:
                identity = identity_from_header(request.headers.get("x-rh-identity"))
        except AuthenticationError as e:
            logger.warning(f"Rejected request to {request.path}: {e}")
            return send_forbidden(str(e))

        request.identity = identity
        return None


class StorageErrorMiddleware:
    """Turn database failures raised by views into a JSON 500."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not isinstance(exception, (StorageError, MigrationError, sqlite3.Error)):
            return None

        logger.error(f"Storage error while handling {request.path}: {exception}")
        return send_error(500, f"storage error: {exception}")
