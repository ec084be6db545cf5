"""Tests for redemption and student API endpoints."""

import json

from fastapi.testclient import TestClient

from eduverify.services.redemption import get_redemption_service

API = "/api/v1"


def issue(client, **overrides):
    body = {
        "student_id": "student-1",
        "product_id": "pencil",
        "product_name": "Pencil",
        "coins_redeemed": 100,
    }
    body.update(overrides)
    response = client.post(f"{API}/redemptions", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestRedemptionEndpoints:
    """Tests for /redemptions endpoints."""

    def test_health(self, client):
        """Health endpoint reports the configured store."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["store"] == "sqlite"

    def test_issue_redemption(self, client):
        """Issuing returns the camelCase record and its payload."""
        data = issue(client)

        record = data["record"]
        assert record["status"] == "pending"
        assert record["studentId"] == "student-1"
        assert record["coinsRedeemed"] == 100
        assert json.loads(data["payload"])["redemptionCode"] == record["redemptionCode"]

    def test_issue_invalid_request(self, client):
        """Negative coins are a bad request."""
        response = client.post(
            f"{API}/redemptions",
            json={
                "student_id": "student-1",
                "product_id": "pencil",
                "product_name": "Pencil",
                "coins_redeemed": -1,
            },
        )

        assert response.status_code == 400
        assert "coins_redeemed" in response.json()["detail"]

    def test_get_detail_and_payload(self, client):
        """Detail and payload are served for issued redemptions."""
        data = issue(client)
        record_id = data["record"]["id"]

        detail = client.get(f"{API}/redemptions/{record_id}").json()
        payload = client.get(f"{API}/redemptions/{record_id}/payload").json()

        assert detail["effective_status"] == "pending"
        assert detail["timeline"]["events"][0]["event_type"] == "CREATED"
        assert payload == {"id": record_id, "payload": data["payload"]}

    def test_unknown_redemption(self, client):
        """Unknown IDs are 404."""
        assert client.get(f"{API}/redemptions/missing").status_code == 404
        assert client.get(f"{API}/redemptions/missing/payload").status_code == 404

    def test_decode(self, client):
        """Decoding reports validity and the failure reason."""
        data = issue(client)

        ok = client.post(f"{API}/redemptions/decode", json={"payload": data["payload"]})
        bad = client.post(f"{API}/redemptions/decode", json={"payload": "garbage"})

        assert ok.json()["valid"] is True
        assert ok.json()["data"]["id"] == data["record"]["id"]
        assert bad.json() == {"valid": False, "data": None, "error": "Could not decode"}

    def test_verify_flow(self, client):
        """Accept then collect a scanned redemption."""
        data = issue(client)

        accepted = client.post(
            f"{API}/redemptions/verify",
            json={"payload": data["payload"], "verifier_id": "teacher-1"},
        ).json()
        collected = client.post(
            f"{API}/redemptions/verify",
            json={"payload": data["payload"], "intent": "collect"},
        ).json()
        again = client.post(
            f"{API}/redemptions/verify",
            json={"payload": data["payload"], "intent": "collect"},
        ).json()

        assert accepted["outcome"] == "verified"
        assert accepted["record"]["verifiedBy"] == "teacher-1"
        assert collected["outcome"] == "collected"
        assert collected["transitioned"] is True
        assert again["outcome"] == "already_finalized"
        assert again["transitioned"] is False

    def test_verify_refusal_is_not_http_error(self, client):
        """Refused verifications are reported in the outcome."""
        response = client.post(
            f"{API}/redemptions/verify", json={"payload": "{\"studentId\": \"s\"}"}
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "invalid"
        assert response.json()["message"] == "Invalid format"

    def test_verify_rejects_unknown_intent(self, client):
        """Unknown intents fail request validation."""
        response = client.post(
            f"{API}/redemptions/verify", json={"payload": "{}", "intent": "refund"}
        )
        assert response.status_code == 422

    def test_verify_code(self, client):
        """Typed codes can be rejected with a reason."""
        data = issue(client)
        code = data["record"]["redemptionCode"]

        response = client.post(
            f"{API}/redemptions/verify-code",
            json={"code": code.lower(), "intent": "reject", "reason": "Wrong product"},
        )

        assert response.json()["outcome"] == "rejected"
        assert response.json()["record"]["rejectedReason"] == "Wrong product"

    def test_expire_sweep(self, client, clock):
        """The sweep persists expiry of overdue redemptions."""
        issue(client, expiry_days=1)
        issue(client)
        clock.advance(days=2)

        response = client.post(f"{API}/redemptions/expire")

        assert response.status_code == 200
        assert response.json() == {"expired": 1}


class TestStudentEndpoints:
    """Tests for /students endpoints."""

    def test_list_and_stats(self, client, clock):
        """Wallet views reflect effective statuses."""
        first = issue(client, coins_redeemed=10, expiry_days=1)
        clock.advance(ms=1000)
        second = issue(client, coins_redeemed=15)
        clock.advance(days=2)

        listing = client.get(f"{API}/students/student-1/redemptions").json()
        stats = client.get(f"{API}/students/student-1/stats").json()

        assert [item["record"]["id"] for item in listing] == [
            second["record"]["id"],
            first["record"]["id"],
        ]
        assert [item["effective_status"] for item in listing] == ["pending", "expired"]
        assert stats["student_id"] == "student-1"
        assert stats["total"] == 2
        assert stats["expired"] == 1
        assert stats["total_coins_spent"] == 25

    def test_store_unavailable_is_503(self, app):
        """Store outages map to 503."""
        from unittest.mock import AsyncMock, MagicMock

        from eduverify.services.redemption import StoreUnavailable

        service = MagicMock()
        service.list_student_redemptions = AsyncMock(
            side_effect=StoreUnavailable("Redemption store unreachable")
        )
        app.dependency_overrides[get_redemption_service] = lambda: service

        with TestClient(app) as client:
            response = client.get(f"{API}/students/student-1/redemptions")

        assert response.status_code == 503
