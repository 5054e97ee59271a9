"""
HTTP contract tests for the trend API.

Response shapes are the DTOs in trendwatch.trends.dto; errors use the
{"error": {"code", "message", "details"?}} envelope.
"""

import json
import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from tests.fixtures import make_action, make_event
from trendwatch.core.enums import ActionType, EntityType
from trendwatch.trends.models import ActionOutcome, TrendEvidence
from trendwatch.trends.sources import seed_source_tiers


def _post(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


def _mention(**overrides):
    mention = {
        "event_key": "Winter Storm",
        "source_type": "wire",
        "source_id": f"api-{uuid.uuid4()}",
        "source_domain": "reuters.com",
        "published_at": (timezone.now() - timedelta(minutes=5)).isoformat(),
    }
    mention.update(overrides)
    return mention


@pytest.mark.django_db
class TestIngestEndpoint:
    def test_single_mention_created(self, client):
        seed_source_tiers()

        response = _post(client, "/api/trends/evidence", _mention())

        assert response.status_code == 201
        body = response.json()
        assert body["created"] == 1
        assert body["results"][0]["event_key"] == "winter storm"

    def test_batch_reports_each_record(self, client):
        mention = _mention()
        payload = {"mentions": [mention, mention, {"event_key": "x"}]}

        response = _post(client, "/api/trends/evidence", payload)

        body = response.json()
        assert response.status_code == 201
        assert (body["created"], body["duplicate"], body["invalid"]) == (1, 1, 1)
        assert TrendEvidence.objects.count() == 1

    def test_all_duplicates_returns_200(self, client):
        mention = _mention()
        _post(client, "/api/trends/evidence", mention)

        response = _post(client, "/api/trends/evidence", mention)

        assert response.status_code == 200
        assert response.json()["duplicate"] == 1

    def test_invalid_json(self, client):
        response = client.post("/api/trends/evidence", data="{not json", content_type="application/json")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_json"

    def test_too_many_mentions(self, client):
        response = _post(client, "/api/trends/evidence", {"mentions": [_mention() for _ in range(501)]})
        assert response.status_code == 400
        assert response.json()["error"]["details"]["received"] == 501

    def test_get_not_allowed(self, client):
        assert client.get("/api/trends/evidence").status_code == 405


@pytest.mark.django_db
class TestReadEndpoints:
    def test_active_trends(self, client):
        now = timezone.now()
        make_event("breaking", now=now, is_breaking=True, rank_score=10.0)
        make_event("ranked", now=now, rank_score=70.0, baseline_7d=1.0, current_24h=48)

        response = client.get("/api/trends/active")

        assert response.status_code == 200
        trends = response.json()["trends"]
        assert [t["event_key"] for t in trends] == ["breaking", "ranked"]
        assert trends[1]["freshness"] == "fresh"
        assert trends[1]["baseline_delta_pct"] == 100.0

    def test_active_breaking_only(self, client):
        now = timezone.now()
        make_event("breaking", now=now, is_breaking=True)
        make_event("calm", now=now)

        response = client.get("/api/trends/active?breaking=true")

        assert [t["event_key"] for t in response.json()["trends"]] == ["breaking"]

    def test_active_bad_limit(self, client):
        response = client.get("/api/trends/active?limit=lots")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_trend_detail(self, client):
        make_event("winter storm", now=timezone.now())

        response = client.get("/api/trends/events/winter%20storm")

        assert response.status_code == 200
        assert response.json()["trend"]["event_key"] == "winter storm"

    def test_trend_detail_not_found(self, client):
        response = client.get("/api/trends/events/unknown")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_run_health(self, client):
        response = client.get("/api/trends/health")

        assert response.status_code == 200
        jobs = {j["job_type"]: j for j in response.json()["jobs"]}
        assert set(jobs) == {"ingest", "baseline", "detect", "feedback"}
        assert jobs["detect"]["freshness_status"] == "never_run"


@pytest.mark.django_db
class TestOutcomeEndpoints:
    def test_record_new_action(self, client):
        event = make_event("senator smith", entity_type=EntityType.PERSON)

        response = _post(client, "/api/trends/outcomes", {"event_id": str(event.id), "action_type": "alert"})

        assert response.status_code == 201
        body = response.json()
        assert body["action_type"] == "alert"
        assert body["entity_type"] == "person"

    def test_attach_outcome(self, client):
        action = make_action(make_event("senator smith"))

        response = _post(
            client,
            "/api/trends/outcomes",
            {"action_id": str(action.id), "outcome_type": "donations", "outcome_value": 50},
        )

        assert response.status_code == 200
        action.refresh_from_db()
        assert action.outcome_value == 50.0

    def test_unknown_action_type(self, client):
        event = make_event("senator smith")

        response = _post(client, "/api/trends/outcomes", {"event_id": str(event.id), "action_type": "tweet"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"
        assert not ActionOutcome.objects.exists()

    def test_action_id_without_outcome(self, client):
        response = _post(client, "/api/trends/outcomes", {"action_id": str(uuid.uuid4())})
        assert response.status_code == 400

    def test_unknown_event(self, client):
        response = _post(client, "/api/trends/outcomes", {"event_id": str(uuid.uuid4()), "action_type": "sms"})
        assert response.status_code == 404

    def test_cohorts(self, client):
        event = make_event("senator smith", entity_type=EntityType.PERSON)
        for value in (1.0, 2.0, 3.0):
            make_action(event, action_type=ActionType.EMAIL, outcome_value=value)

        response = client.get("/api/trends/cohorts?group_by=action_type")

        assert response.status_code == 200
        body = response.json()
        assert body["group_by"] == "action_type"
        assert body["total_samples"] == 3
        assert body["cohorts"][0]["cohort"] == "email"

    def test_cohorts_bad_grouping(self, client):
        response = client.get("/api/trends/cohorts?group_by=actor")
        assert response.status_code == 400
