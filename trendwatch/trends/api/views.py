"""
Trend API Views.

Implements:
- POST /api/trends/evidence - ingest one mention or {"mentions": [...]}
- GET  /api/trends/active - active trends in rank order
- GET  /api/trends/events/:event_key - one trend with evidence
- GET  /api/trends/health - run health per job type
- POST /api/trends/outcomes - record an action or attach an outcome
- GET  /api/trends/cohorts - outcome significance by cohort

Read views accept an optional ?tenant= to resolve tenant config overrides.
No auth (access control is handled outside this service).
"""

from __future__ import annotations

import json
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods
from pydantic import ValidationError

from trendwatch.trends.config import get_config
from trendwatch.trends.dto import OutcomeRequestDTO
from trendwatch.trends.ingestion import ingest_batch
from trendwatch.trends.services import health, outcomes, trend_views
from trendwatch.trends.services.outcomes import ObjectNotFoundError

MAX_ACTIVE_LIMIT = 200
MAX_MENTIONS_PER_REQUEST = 500


# =============================================================================
# HELPERS
# =============================================================================


def error_response(
    code: str,
    message: str,
    status: int = 400,
    details: dict[str, Any] | None = None,
) -> JsonResponse:
    """
    Standard error envelope:
    {"error": {"code": "...", "message": "...", "details": {...}}}
    """
    envelope: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        envelope["error"]["details"] = details
    return JsonResponse(envelope, status=status)


def _parse_body(request: HttpRequest) -> tuple[Any, JsonResponse | None]:
    try:
        return (json.loads(request.body) if request.body else {}), None
    except json.JSONDecodeError:
        return None, error_response("invalid_json", "Invalid JSON body")


def _validation_details(exc: ValidationError) -> dict:
    return {
        "errors": [
            {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
    }


# =============================================================================
# EVIDENCE
# =============================================================================


@csrf_exempt
@require_http_methods(["POST"])
def ingest_evidence(request: HttpRequest) -> JsonResponse:
    """
    POST /api/trends/evidence

    Body: a single mention object, or {"mentions": [mention, ...]}.
    Malformed and duplicate mentions are reported per record, not rejected
    as a whole.
    """
    body, error = _parse_body(request)
    if error:
        return error

    if isinstance(body, dict) and "mentions" in body:
        mentions = body["mentions"]
    else:
        mentions = [body]

    if not isinstance(mentions, list):
        return error_response("validation_error", "mentions must be a list")
    if len(mentions) > MAX_MENTIONS_PER_REQUEST:
        return error_response(
            "validation_error",
            f"At most {MAX_MENTIONS_PER_REQUEST} mentions per request",
            details={"received": len(mentions)},
        )

    result = ingest_batch(mentions)
    status = 201 if result.created else 200
    return JsonResponse(result.model_dump(mode="json"), status=status)


# =============================================================================
# READ VIEWS
# =============================================================================


@require_GET
def active_trends(request: HttpRequest) -> JsonResponse:
    """
    GET /api/trends/active?limit=50&breaking=true&tenant=slug
    """
    try:
        limit = int(request.GET.get("limit", 50))
    except ValueError:
        return error_response("validation_error", "limit must be an integer")
    limit = max(1, min(MAX_ACTIVE_LIMIT, limit))
    breaking_only = request.GET.get("breaking", "").lower() in ("1", "true", "yes")

    config = get_config(request.GET.get("tenant"))
    dto = trend_views.get_active_trends(config, limit=limit, breaking_only=breaking_only)
    return JsonResponse(dto.model_dump(mode="json"))


@require_GET
def trend_detail(request: HttpRequest, event_key: str) -> JsonResponse:
    """GET /api/trends/events/:event_key"""
    try:
        dto = trend_views.get_trend_detail(event_key)
    except ObjectNotFoundError:
        return error_response("not_found", "Trend not found", status=404, details={"event_key": event_key})
    return JsonResponse(dto.model_dump(mode="json"))


@require_GET
def run_health(request: HttpRequest) -> JsonResponse:
    """GET /api/trends/health"""
    return JsonResponse(health.get_run_health().model_dump(mode="json"))


# =============================================================================
# OUTCOMES
# =============================================================================


@csrf_exempt
@require_http_methods(["POST"])
def record_outcome(request: HttpRequest) -> JsonResponse:
    """
    POST /api/trends/outcomes

    New action:      {"event_id", "action_type", "outcome_type"?, "outcome_value"?, "actor"?}
    Attach outcome:  {"action_id", "outcome_type"?, "outcome_value"?}
    """
    body, error = _parse_body(request)
    if error:
        return error

    try:
        payload = OutcomeRequestDTO.model_validate(body)
    except ValidationError as e:
        return error_response("validation_error", "Invalid outcome request", details=_validation_details(e))

    try:
        dto, created = outcomes.handle_outcome_request(payload)
    except ObjectNotFoundError as e:
        return error_response(
            "not_found",
            f"{e.object_type} not found",
            status=404,
            details={"id": str(e.object_id)},
        )
    return JsonResponse(dto.model_dump(mode="json"), status=201 if created else 200)


@require_GET
def cohorts(request: HttpRequest) -> JsonResponse:
    """GET /api/trends/cohorts?group_by=entity_type&tenant=slug"""
    group_by = request.GET.get("group_by", "entity_type")
    config = get_config(request.GET.get("tenant"))
    try:
        dto = outcomes.cohort_report(config, group_by=group_by)
    except ValueError as e:
        return error_response("validation_error", str(e), details={"group_by": group_by})
    return JsonResponse(dto.model_dump(mode="json"))
