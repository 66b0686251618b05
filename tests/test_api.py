"""HTTP tests for the FastAPI surface with dependency overrides."""

import io
import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from app.core.config import settings
from app.database import get_db
from app.dependencies import get_image_intake_service, get_onboarding_service
from app.services.image_intake import ImageIntakeService
from main import app
from tests.payloads import amenities_payload, complete_draft, rooms_payload


def png_bytes(width=64, height=48) -> bytes:
    board = (np.indices((height, width)).sum(axis=0) % 2 * 255).astype(np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(board).convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def client(service, config, db_session_factory):
    def override_get_db():
        db = db_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_onboarding_service] = lambda: service
    app.dependency_overrides[get_image_intake_service] = lambda: ImageIntakeService(config)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_session(client) -> str:
    response = client.post("/api/onboarding/sessions", json={"hotel_id": "hotel-1", "owner_id": "owner-1"})
    assert response.status_code == 201
    return response.json()["session_id"]


class TestOnboardingEndpoints:

    def test_create_and_read_session(self, client):
        session_id = create_session(client)
        response = client.get(f"/api/onboarding/sessions/{session_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["session"]["status"] == "ACTIVE"
        assert body["remaining_required_steps"] == ["amenities", "images", "property-info", "rooms"]

    def test_create_rejects_blank_ids(self, client):
        response = client.post("/api/onboarding/sessions", json={"hotel_id": "", "owner_id": "o"})
        assert response.status_code == 422

    def test_unknown_session(self, client):
        assert client.get("/api/onboarding/sessions/nope").status_code == 404

    def test_update_step(self, client):
        session_id = create_session(client)
        response = client.put(f"/api/onboarding/sessions/{session_id}/steps/amenities", json=amenities_payload())
        assert response.status_code == 200
        body = response.json()
        assert body["step_id"] == "amenities"
        assert body["breakdown"]["content_completeness"]["factors"]["amenities"] == 100

    def test_structural_error(self, client):
        session_id = create_session(client)
        response = client.put(f"/api/onboarding/sessions/{session_id}/steps/rooms", json=rooms_payload([]))
        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == ["rooms: at least one room type is required"]

    def test_unknown_step(self, client):
        session_id = create_session(client)
        response = client.put(f"/api/onboarding/sessions/{session_id}/steps/pool-party", json={})
        assert response.status_code == 422

    def test_complete_flow(self, client, publisher):
        session_id = create_session(client)

        response = client.post(f"/api/onboarding/sessions/{session_id}/complete")
        assert response.status_code == 422
        assert response.json()["detail"]["missing_steps"] == ["amenities", "images", "property-info", "rooms"]

        for step_id, payload in complete_draft().items():
            assert client.put(f"/api/onboarding/sessions/{session_id}/steps/{step_id}", json=payload).status_code == 200

        response = client.post(f"/api/onboarding/sessions/{session_id}/complete")
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"
        assert response.json()["quality_score"] == 100

        again = client.post(f"/api/onboarding/sessions/{session_id}/complete")
        assert again.json()["already_completed"] is True
        assert len(publisher.events) == 1

        response = client.put(f"/api/onboarding/sessions/{session_id}/steps/amenities", json=amenities_payload())
        assert response.status_code == 409

    def test_abandon(self, client):
        session_id = create_session(client)
        assert client.post(f"/api/onboarding/sessions/{session_id}/abandon").json()["status"] == "ABANDONED"
        assert client.post(f"/api/onboarding/sessions/{session_id}/abandon").status_code == 409

    def test_expired_session(self, client, clock):
        session_id = create_session(client)
        clock.advance(days=8)
        response = client.put(f"/api/onboarding/sessions/{session_id}/steps/amenities", json=amenities_payload())
        assert response.status_code == 410

    def test_validate_step(self, client):
        response = client.post(
            "/api/onboarding/steps/amenities/validate",
            json={"payload": amenities_payload(["ev-charging"])},
        )
        assert response.status_code == 200
        assert response.json()["is_valid"] is False


class TestImageAnalysisEndpoint:

    def test_results_in_upload_order(self, client):
        files = [
            ("files", ("lobby.png", png_bytes(), "image/png")),
            ("files", ("broken.jpg", b"not an image", "image/jpeg")),
        ]
        response = client.post("/api/onboarding/images/analyze", files=files, data={"category": "lobby"})
        assert response.status_code == 200
        body = response.json()
        assert [image["filename"] for image in body["images"]] == ["lobby.png", "broken.jpg"]
        assert body["images"][0]["record"]["category"] == "lobby"
        assert body["images"][0]["record"]["dimensions"] == {"width": 64, "height": 48}
        assert body["images"][1]["analysis"]["score"] == 0
        assert body["passed_count"] == 1
        assert body["failed_count"] == 1


class TestAmenityEndpoints:

    def test_catalog_grouped_by_category(self, client):
        body = client.get("/api/amenities").json()
        assert "wifi" in [a["id"] for a in body["categories"]["PROPERTY_WIDE"]]

    def test_get_amenity(self, client):
        assert client.get("/api/amenities/spa").json()["name"] == "Spa Services"
        assert client.get("/api/amenities/unicorn").status_code == 404

    def test_validate_selection(self, client):
        response = client.post("/api/amenities/validate", json=amenities_payload(["smoke-free", "smoking-area"]))
        assert response.json()["is_valid"] is False

    def test_room_inheritance(self, client):
        response = client.post("/api/amenities/inheritance", json={
            "property_amenities": ["wifi", "restaurant", "solar-power"],
            "room_amenities": ["mini-bar"],
            "overrides": [{"amenity_id": "solar-power", "action": "remove"}],
        })
        assert response.status_code == 200
        assert response.json() == {
            "inherited": ["wifi", "solar-power"],
            "specific": ["mini-bar"],
            "final": ["wifi", "mini-bar"],
        }


class TestAdminEndpoints:

    def test_sweep_requires_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_API_KEY", "secret")
        assert client.post("/api/admin/sessions/sweep", headers={"x-admin-key": "wrong"}).status_code == 403

    def test_sweep(self, client, clock, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_API_KEY", "secret")
        create_session(client)
        clock.advance(days=8)
        response = client.post("/api/admin/sessions/sweep", headers={"x-admin-key": "secret"})
        assert response.status_code == 200
        assert response.json()["abandoned_count"] == 1


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"
