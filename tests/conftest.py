import os
from datetime import date, datetime, time, timedelta, timezone

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic.main import app
from clinic.core.database import Base, get_db, get_redis
from clinic.core.security import TokenAuthority, TokenConfig, hash_password
from clinic.models import Admin, Appointment, AppointmentStatus, Doctor, Patient
from clinic.services.role_resolver import RoleResolver

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

fake_redis = fakeredis.FakeRedis(decode_responses=True)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

def override_get_redis():
    return fake_redis

app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_redis] = override_get_redis

TEST_SECRET_KEY = "clinic-test-suite-signing-key-0123456789abcdef"
PASSWORD = "secret123"

# Far enough ahead that request-level "must be in the future" checks pass
FUTURE_DAY = date.today() + timedelta(days=30)

def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))

def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}

class FakeClock:
    """Controllable replacement for the token authority's clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def redis_client():
    fake_redis.flushall()
    yield fake_redis
    fake_redis.flushall()

@pytest.fixture
def client(test_db, redis_client):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc))

@pytest.fixture
def token_config():
    return TokenConfig(secret_key=TEST_SECRET_KEY, lifetime=timedelta(hours=1))

@pytest.fixture
def authority(token_config):
    return TokenAuthority(token_config)

@pytest.fixture
def app_authority():
    """The authority the running application signs tokens with."""
    return app.state.token_authority

@pytest.fixture
def resolver(db_session, authority):
    return RoleResolver(db_session, authority)

@pytest.fixture
def make_admin(db_session):
    def _make(username="root"):
        admin = Admin(username=username, password_hash=hash_password(PASSWORD))
        db_session.add(admin)
        db_session.commit()
        db_session.refresh(admin)
        return admin
    return _make

@pytest.fixture
def make_doctor(db_session):
    def _make(email="house@clinic.test", name="Gregory House", specialty="Diagnostics",
              available_times=None):
        doctor = Doctor(
            name=name,
            specialty=specialty,
            email=email,
            password_hash=hash_password(PASSWORD),
            phone="555-0100",
            available_times=available_times if available_times is not None else ["09:00-12:00"],
        )
        db_session.add(doctor)
        db_session.commit()
        db_session.refresh(doctor)
        return doctor
    return _make

@pytest.fixture
def make_patient(db_session):
    def _make(email="jane@clinic.test", name="Jane Doe", phone=None):
        patient = Patient(
            name=name,
            email=email,
            password_hash=hash_password(PASSWORD),
            phone=phone,
            address="12 Elm Street",
        )
        db_session.add(patient)
        db_session.commit()
        db_session.refresh(patient)
        return patient
    return _make

@pytest.fixture
def make_appointment(db_session):
    def _make(doctor, patient, when, status=AppointmentStatus.SCHEDULED):
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_time=when,
            status=status.value,
        )
        db_session.add(appointment)
        db_session.commit()
        db_session.refresh(appointment)
        return appointment
    return _make
