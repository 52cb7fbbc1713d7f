"""
URL configuration for the REST API.
"""

from django.conf import settings
from django.urls import path

from . import views

API_PREFIX = getattr(settings, "AGGREGATOR_API_PREFIX", "api/v1/")

urlpatterns = [
    path(API_PREFIX, views.main_endpoint, name="main"),
    path(f"{API_PREFIX}openapi.json", views.openapi_spec, name="openapi"),
    path(f"{API_PREFIX}organizations", views.organizations, name="organizations"),
    path(
        f"{API_PREFIX}organizations/<int:org_id>/clusters",
        views.clusters_for_org,
        name="clusters_for_org",
    ),
    path(
        f"{API_PREFIX}report/<int:org_id>/<str:cluster>",
        views.report_for_cluster,
        name="report",
    ),
    path(
        f"{API_PREFIX}clusters/<str:cluster>/rules/<str:rule_id>/disable",
        views.disable_rule,
        name="disable_rule",
    ),
    path(
        f"{API_PREFIX}clusters/<str:cluster>/rules/<str:rule_id>/enable",
        views.enable_rule,
        name="enable_rule",
    ),
]
