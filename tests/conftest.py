import os
from datetime import time

import pytest
from fastapi.testclient import TestClient

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite://"

from chamberbox.main import app
from chamberbox.core.database import Base, SessionLocal, engine, get_redis, import_models
from chamberbox.core.security import UserRole, get_password_hash
from chamberbox.models.chamber import Chamber, AvailabilitySlot
from chamberbox.models.doctor import Doctor, SubscriptionTier
from chamberbox.models.user import User
from chamberbox.services.subscription_service import SubscriptionService

TEST_PASSWORD = "TestPassword123"


class FakeRedis:
    """Just enough of the redis client for the rate limiter."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, seconds, value):
        self.store[key] = str(value)

    def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])


@pytest.fixture(scope="function")
def test_db():
    import_models()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        SubscriptionService(db).ensure_default_plans()
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(test_db, fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


# Data helpers

def create_doctor(db, email="doctor@example.com", tier=SubscriptionTier.TRIAL, slug=None, **fields):
    user = User(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=UserRole.DOCTOR,
        is_active=True,
    )
    db.add(user)
    db.flush()

    doctor = Doctor(
        user_id=user.id,
        full_name=fields.pop("full_name", "Dr. Rahman"),
        slug=slug or email.split("@")[0],
        subscription_tier=tier,
        **fields,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


def create_admin(db, email="admin@example.com"):
    admin = User(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def create_chamber(db, doctor, name="Green Life Chamber", **fields):
    chamber = Chamber(
        doctor_id=doctor.id,
        name=name,
        address=fields.pop("address", "House 12, Road 5, Dhanmondi"),
        is_active=fields.pop("is_active", True),
        **fields,
    )
    db.add(chamber)
    db.commit()
    db.refresh(chamber)
    return chamber


def create_slot(db, chamber, day_of_week, start=time(9, 0), end=time(12, 0), **fields):
    slot = AvailabilitySlot(
        chamber_id=chamber.id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=fields.pop("is_active", True),
        **fields,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def login(client, email, password=TEST_PASSWORD):
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def register_doctor(client, email="doctor@example.com", full_name="Dr. Rahman"):
    response = client.post("/api/v1/auth/register", json={
        "email": email,
        "password": TEST_PASSWORD,
        "role": "doctor",
        "full_name": full_name,
    })
    assert response.status_code == 200, response.text
    return login(client, email)
