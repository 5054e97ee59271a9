"""
Trend API URL routing.

URL patterns:
- POST /api/trends/evidence
- GET  /api/trends/active
- GET  /api/trends/events/:event_key
- GET  /api/trends/health
- POST /api/trends/outcomes
- GET  /api/trends/cohorts
"""

from django.urls import path

from trendwatch.trends.api import views

app_name = "trends_api"

urlpatterns = [
    path("evidence", views.ingest_evidence, name="ingest-evidence"),
    path("active", views.active_trends, name="active-trends"),
    path("events/<str:event_key>", views.trend_detail, name="trend-detail"),
    path("health", views.run_health, name="run-health"),
    path("outcomes", views.record_outcome, name="record-outcome"),
    path("cohorts", views.cohorts, name="cohorts"),
]
