import pytest

from chamberbox.models.doctor import SubscriptionTier

from .conftest import create_doctor, login

CHAMBER = {"name": "Popular Diagnostic", "address": "Road 2, Dhanmondi, Dhaka"}


@pytest.fixture
def headers(client, db_session):
    create_doctor(db_session, tier=SubscriptionTier.PRO)
    return login(client, "doctor@example.com")


class TestChambers:

    def test_first_chamber_is_primary(self, client, headers):
        response = client.post("/api/v1/chambers", headers=headers, json=CHAMBER)
        assert response.status_code == 201
        assert response.json()["is_primary"] is True

    def test_new_primary_replaces_old(self, client, headers):
        first = client.post("/api/v1/chambers", headers=headers, json=CHAMBER).json()
        second = client.post("/api/v1/chambers", headers=headers, json={
            **CHAMBER, "name": "City Hospital", "is_primary": True,
        }).json()

        chambers = {c["id"]: c for c in client.get("/api/v1/chambers", headers=headers).json()}
        assert chambers[second["id"]]["is_primary"] is True
        assert chambers[first["id"]]["is_primary"] is False

    def test_chamber_limit(self, client, db_session):
        create_doctor(db_session, email="trial@example.com")
        trial_headers = login(client, "trial@example.com")

        assert client.post("/api/v1/chambers", headers=trial_headers, json=CHAMBER).status_code == 201
        response = client.post("/api/v1/chambers", headers=trial_headers, json=CHAMBER)
        assert response.status_code == 403

    def test_deactivate(self, client, headers):
        chamber = client.post("/api/v1/chambers", headers=headers, json=CHAMBER).json()
        response = client.delete(f"/api/v1/chambers/{chamber['id']}", headers=headers)
        assert response.status_code == 204

        listed = client.get("/api/v1/chambers", headers=headers).json()
        assert listed[0]["is_active"] is False


class TestAvailabilitySlots:

    @pytest.fixture
    def chamber(self, client, headers):
        return client.post("/api/v1/chambers", headers=headers, json=CHAMBER).json()

    def test_add_and_list(self, client, headers, chamber):
        response = client.post(f"/api/v1/chambers/{chamber['id']}/slots", headers=headers, json={
            "day_of_week": 0,
            "start_time": "17:00",
            "end_time": "21:00",
            "slot_duration_minutes": 10,
        })
        assert response.status_code == 201

        slots = client.get(f"/api/v1/chambers/{chamber['id']}/slots", headers=headers).json()
        assert len(slots) == 1
        assert slots[0]["day_of_week"] == 0
        assert slots[0]["slot_duration_minutes"] == 10

    @pytest.mark.parametrize("body", [
        {"day_of_week": 7, "start_time": "09:00", "end_time": "12:00"},
        {"day_of_week": -1, "start_time": "09:00", "end_time": "12:00"},
        {"day_of_week": 1, "start_time": "12:00", "end_time": "09:00"},
    ])
    def test_invalid_slots_rejected(self, client, headers, chamber, body):
        response = client.post(f"/api/v1/chambers/{chamber['id']}/slots", headers=headers, json=body)
        assert response.status_code == 422

    def test_update_keeps_time_order(self, client, headers, chamber):
        slot = client.post(f"/api/v1/chambers/{chamber['id']}/slots", headers=headers, json={
            "day_of_week": 2, "start_time": "09:00", "end_time": "12:00",
        }).json()

        response = client.patch(f"/api/v1/chambers/slots/{slot['id']}", headers=headers, json={
            "end_time": "08:00",
        })
        assert response.status_code == 400

        response = client.patch(f"/api/v1/chambers/slots/{slot['id']}", headers=headers, json={
            "is_active": False,
        })
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_other_doctors_chamber_not_found(self, client, headers, chamber, db_session):
        create_doctor(db_session, email="other@example.com")
        other_headers = login(client, "other@example.com")

        response = client.get(f"/api/v1/chambers/{chamber['id']}/slots", headers=other_headers)
        assert response.status_code == 404


class TestIntegrations:

    def test_defaults_when_unsaved(self, client, headers):
        response = client.get("/api/v1/integrations", headers=headers)
        assert response.status_code == 200
        assert response.json()["whatsapp_enabled"] is False
        assert response.json()["reminder_hours_before"] == 2

    def test_update(self, client, headers):
        response = client.put("/api/v1/integrations", headers=headers, json={
            "calendly_enabled": True,
            "calendly_url": "https://calendly.com/dr-rahman",
            "whatsapp_enabled": True,
            "whatsapp_number": "+8801711000000",
        })
        assert response.status_code == 200
        assert response.json()["whatsapp_number"] == "01711000000"
        assert client.get("/api/v1/integrations", headers=headers).json()["calendly_enabled"] is True

    def test_malformed_calendly_url(self, client, headers):
        response = client.put("/api/v1/integrations", headers=headers, json={
            "calendly_url": "https://example.com/book",
        })
        assert response.status_code == 422

    def test_whatsapp_needs_pro(self, client, db_session):
        create_doctor(db_session, email="basic@example.com", tier=SubscriptionTier.BASIC)
        basic_headers = login(client, "basic@example.com")

        response = client.put("/api/v1/integrations", headers=basic_headers, json={
            "whatsapp_enabled": True,
        })
        assert response.status_code == 403
        assert response.json()["plan_required"] == "Pro"
