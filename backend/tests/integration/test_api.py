"""HTTP API tests with repository and processor dependencies overridden."""

import pytest
from fastapi.testclient import TestClient

from main import app
from rmvs.api.submissions import get_batch_processor, get_repository
from rmvs.intake import BatchProcessor
from rmvs.models import Decision, VerificationLog, VerificationResult, VerificationType


@pytest.fixture
def client(repository):
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_batch_processor] = lambda: BatchProcessor(
        repository, None, verification_enabled=False
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stored_log(repository, oak_pic) -> VerificationLog:
    result = VerificationResult(
        suggestion_id=oak_pic.id,
        overall_score=0.7,
        decision=Decision.FLAG_FOR_HUMAN,
        decision_reason="Verification score below auto-approve threshold: 70%",
    )
    log = VerificationLog.from_result(result, VerificationType.INITIAL, "verification-agent-v1.0.0")
    repository.logs.append(log)
    return log


class TestSuggestBatch:
    def test_invalid_batch_is_rejected_with_details(self, client):
        response = client.post(
            "/api/v1/resources/suggest-batch",
            json={"resources": [{"address": "1212 Broadway", "city": "Oakland", "state": "CA"}]},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "name"
        assert body["details"][0]["details"] == {"index": 0}

    def test_valid_batch_is_processed(self, client):
        response = client.post(
            "/api/v1/resources/suggest-batch",
            json={
                "resources": [
                    {"name": "Oak PIC", "address": "1212 Broadway", "city": "Oakland", "state": "CA"}
                ]
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["verification_enabled"] is False
        assert body["stats"]["submitted"] == 1
        assert body["verification_results"][0]["status"] == "flagged"


class TestVerificationHistory:
    def test_lists_logs(self, client, stored_log, oak_pic):
        response = client.get(f"/api/v1/verification/{oak_pic.id}/logs")

        assert response.status_code == 200
        assert response.json()[0]["id"] == str(stored_log.id)

    def test_records_human_review(self, client, stored_log):
        response = client.post(
            f"/api/v1/verification/logs/{stored_log.id}/review",
            json={"decision": "auto_approve", "notes": "Called and confirmed"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["human_reviewed"] is True
        assert body["human_decision"] == "auto_approve"
        # The automated decision is preserved
        assert body["decision"] == "flag_for_human"

    def test_review_of_unknown_log_is_404(self, client):
        response = client.post(
            "/api/v1/verification/logs/00000000-0000-0000-0000-000000000000/review",
            json={"decision": "auto_reject"},
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_events_for_unknown_suggestion_are_empty(self, client):
        response = client.get("/api/v1/verification/00000000-0000-0000-0000-000000000000/events")

        assert response.status_code == 200
        assert response.json() == []

    def test_malformed_suggestion_id_is_422(self, client):
        response = client.get("/api/v1/verification/not-a-uuid/logs")

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "suggestion_id"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "rmvs-api"}
