"""
Views for the REST API.
"""

import json
import logging
import uuid
from contextlib import closing
from pathlib import Path

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from ..storage import ItemNotFoundError, Storage
from .responses import send_bad_request, send_forbidden, send_not_found, send_ok

logger = logging.getLogger(__name__)

OPENAPI_PATH = Path(__file__).resolve().parent / "openapi.json"

NO_ORG_PERMISSIONS_MESSAGE = "you have no permissions to get or change info about this organization"
NO_IDENTITY_MESSAGE = "user identity is not available"


def _open_storage() -> Storage:
    return Storage(settings.AGGREGATOR_DB_PATH)


def _validate_cluster_name(cluster: str) -> HttpResponse | None:
    """Cluster names are UUIDs."""
    try:
        uuid.UUID(cluster)
    except ValueError:
        return send_bad_request(f"invalid cluster name format: '{cluster}'")
    return None


def _check_org_permissions(request: HttpRequest, org_id: int) -> HttpResponse | None:
    """Reject callers whose identity belongs to another organization."""
    identity = getattr(request, "identity", None)
    if identity is None:
        # authentication disabled
        return None
    if identity.org_id != str(org_id):
        logger.warning(
            f"Account {identity.account_number} (org {identity.org_id}) "
            f"denied access to org {org_id}"
        )
        return send_forbidden(NO_ORG_PERMISSIONS_MESSAGE)
    return None


@require_GET
def main_endpoint(request: HttpRequest) -> HttpResponse:
    return send_ok()


@require_GET
def openapi_spec(request: HttpRequest) -> HttpResponse:
    return JsonResponse(json.loads(OPENAPI_PATH.read_text(encoding="utf-8")))


@require_GET
def organizations(request: HttpRequest) -> HttpResponse:
    """List organizations that have reports."""
    with closing(_open_storage()) as storage:
        orgs = storage.list_of_orgs()
    return send_ok(organizations=orgs)


@require_GET
def clusters_for_org(request: HttpRequest, org_id: int) -> HttpResponse:
    """List clusters of one organization."""
    denied = _check_org_permissions(request, org_id)
    if denied:
        return denied

    with closing(_open_storage()) as storage:
        clusters = storage.list_of_clusters_for_org(org_id)
    return send_ok(clusters=clusters)


@require_GET
def report_for_cluster(request: HttpRequest, org_id: int, cluster: str) -> HttpResponse:
    """Latest report for a cluster."""
    invalid = _validate_cluster_name(cluster)
    if invalid:
        return invalid
    denied = _check_org_permissions(request, org_id)
    if denied:
        return denied

    try:
        with closing(_open_storage()) as storage:
            record = storage.read_report_for_cluster(org_id, cluster)
    except ItemNotFoundError as e:
        return send_not_found(str(e))

    return send_ok(
        report=record.report_json(),
        meta={"last_checked_at": record.last_checked_at, "reported_at": record.reported_at},
    )


def _toggle_rule(request: HttpRequest, cluster: str, rule_id: str, disabled: bool) -> HttpResponse:
    invalid = _validate_cluster_name(cluster)
    if invalid:
        return invalid

    identity = getattr(request, "identity", None)
    if identity is None:
        return send_forbidden(NO_IDENTITY_MESSAGE)

    with closing(_open_storage()) as storage:
        storage.toggle_rule_for_cluster(cluster, rule_id, identity.account_number, disabled)
    return send_ok()


@require_http_methods(["PUT"])
def disable_rule(request: HttpRequest, cluster: str, rule_id: str) -> HttpResponse:
    return _toggle_rule(request, cluster, rule_id, disabled=True)


@require_http_methods(["PUT"])
def enable_rule(request: HttpRequest, cluster: str, rule_id: str) -> HttpResponse:
    return _toggle_rule(request, cluster, rule_id, disabled=False)
