from datetime import datetime, timedelta

from chamberbox.models.doctor import Doctor, SubscriptionTier
from chamberbox.services.feature_gate import Readiness
from chamberbox.services.subscription_service import DEFAULT_PLANS, SubscriptionService

from .conftest import create_admin, create_doctor, login, register_doctor


class TestSubscriptionService:

    def test_default_plans_seeded_once(self, db_session):
        service = SubscriptionService(db_session)
        assert len(service.list_plans()) == len(DEFAULT_PLANS)
        assert service.ensure_default_plans() == 0

    def test_days_remaining(self, db_session):
        now = datetime(2026, 10, 17, 12, 0)
        doctor = create_doctor(db_session, subscription_expires_at=now + timedelta(days=2, hours=3))

        assert SubscriptionService.days_remaining(doctor, now=now) == 3
        assert not SubscriptionService.is_expired(doctor, now=now)
        assert SubscriptionService.is_expired(doctor, now=now + timedelta(days=3))

    def test_no_expiry_never_expires(self, db_session):
        doctor = create_doctor(db_session)
        assert SubscriptionService.days_remaining(doctor) is None
        assert not SubscriptionService.is_expired(doctor)

    def test_snapshot_without_doctor_is_pending(self, db_session):
        snapshot = SubscriptionService(db_session).snapshot(None)
        assert snapshot.readiness == Readiness.PENDING

    def test_snapshot_fails_without_plan(self, db_session):
        doctor = create_doctor(db_session, tier=SubscriptionTier.ENTERPRISE)
        service = SubscriptionService(db_session)
        db_session.delete(service.get_plan(SubscriptionTier.ENTERPRISE))
        db_session.commit()

        snapshot = service.snapshot(doctor)
        assert snapshot.readiness == Readiness.FAILED
        assert not service.check_feature(doctor, "export").has_access


class TestSubscriptionApi:

    def test_overview(self, client):
        headers = register_doctor(client)
        response = client.get("/api/v1/subscription", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "trial"
        assert data["readiness"] == "ready"
        assert data["is_expired"] is False
        assert data["plan"]["name"] == "Trial"
        assert data["limits"]["patients"]["within_limit"] is True
        assert data["limits"]["prescriptions"]["remaining"] == 50

    def test_feature_check(self, client):
        headers = register_doctor(client)

        response = client.get("/api/v1/subscription/features/whatsapp", headers=headers)
        assert response.status_code == 200
        assert response.json()["has_access"] is False
        assert response.json()["plan_required"] == "Pro"

        response = client.get("/api/v1/subscription/features/queue_booking", headers=headers)
        assert response.json()["has_access"] is True

    def test_unknown_feature_rejected(self, client):
        headers = register_doctor(client)
        assert client.get("/api/v1/subscription/features/teleport", headers=headers).status_code == 422

    def test_limit_check(self, client):
        headers = register_doctor(client)
        response = client.get("/api/v1/subscription/limits/patients", headers=headers)

        assert response.status_code == 200
        assert response.json()["current"] == 0
        assert response.json()["max"] == 100
        assert response.json()["remaining"] == 100

    def test_plans_are_public(self, client):
        response = client.get("/api/v1/subscription/plans")
        assert response.status_code == 200
        assert [p["tier"] for p in response.json()][0] == "trial"


class TestSubscriptionAdmin:

    def test_update_plan(self, client, db_session):
        create_admin(db_session)
        headers = login(client, "admin@example.com")

        response = client.patch("/api/v1/subscription/plans/trial", headers=headers, json={
            "max_patients": -1,
            "can_use_analytics": True,
        })
        assert response.status_code == 200
        assert response.json()["max_patients"] == -1
        assert response.json()["can_use_analytics"] is True

    def test_assign_tier(self, client, db_session):
        create_admin(db_session)
        doctor = create_doctor(db_session)
        headers = login(client, "admin@example.com")
        expires = (datetime.utcnow() + timedelta(days=30)).replace(microsecond=0)

        response = client.put(f"/api/v1/subscription/doctors/{doctor.id}", headers=headers, json={
            "tier": "pro",
            "expires_at": expires.isoformat(),
        })
        assert response.status_code == 200
        assert response.json()["tier"] == "pro"

        db_session.expire_all()
        stored = db_session.query(Doctor).filter(Doctor.id == doctor.id).first()
        assert stored.subscription_tier == SubscriptionTier.PRO
        assert stored.subscription_expires_at == expires

    def test_doctors_cannot_edit_plans(self, client):
        headers = register_doctor(client)
        response = client.patch("/api/v1/subscription/plans/trial", headers=headers, json={
            "max_patients": -1,
        })
        assert response.status_code == 403
