import os

# Set testing environment before the application settings are imported
os.environ["TESTING"] = "1"

import pytest
from fastapi.testclient import TestClient

from medqueue.core.database import Database
from medqueue.core.security import UserRole, get_password_hash, create_user_token
from medqueue.main import app
from medqueue.models.doctor import Doctor, VerificationStatus
from medqueue.models.user import User

TEST_PASSWORD = "TestPassword123"


class FakeRedis:
    """In-memory stand-in for the two Redis commands the rate limiter uses."""

    def __init__(self):
        self.data = {}
        self.ttl = {}

    def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def expire(self, key, seconds):
        self.ttl[key] = seconds
        return True


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'medqueue.db'}").connect()
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.new_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(database, fake_redis):
    app.state.database = database
    app.state.redis = fake_redis
    try:
        with TestClient(app, base_url="http://testserver") as test_client:
            yield test_client
    finally:
        app.state.database = None
        app.state.redis = None


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=UserRole.PATIENT, email=None, password=TEST_PASSWORD):
        counter["n"] += 1
        user = User(
            email=email or f"{role.value}{counter['n']}@example.com",
            full_name=f"{role.value.title()} {counter['n']}",
            password_hash=get_password_hash(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        # end the read transaction so the SQLite write lock is released
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    counter = {"n": 0}

    def _make_doctor(status=VerificationStatus.VERIFIED, user=None, **fields):
        counter["n"] += 1
        user = user or make_user(UserRole.DOCTOR)
        values = {
            "name": f"Dr. Test {counter['n']}",
            "registry_id": f"HPR-{counter['n']:05d}",
            "specialty": "Cardiology",
            "clinic": "Heart Clinic",
            "hospital": "City Hospital",
            "price": 500.0,
        }
        values.update(fields)
        doctor = Doctor(user_id=user.id, verification_status=status, **values)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        db.commit()
        return doctor

    return _make_doctor


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_user_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token.access_token}"}

    return _auth_headers
