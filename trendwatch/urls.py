"""
URL configuration for the Trendwatch backend.

- /admin/ for source tier curation and ledger inspection
- /api/trends/ for the active-trend, run-health and outcome endpoints
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path(
        "api/trends/",
        include("trendwatch.trends.api.urls", namespace="trends_api"),
    ),
]
