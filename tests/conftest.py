import mongomock
import pytest
from bson import ObjectId

from citywatch.app import create_app
from citywatch.utils.auth import create_token

SECRET = "citywatch-test-secret-0123456789abcdefghijklmnop"


@pytest.fixture
def db():
    return mongomock.MongoClient()["citywatch_test"]


@pytest.fixture
def app(db):
    return create_app(
        {
            "TESTING": True,
            "JWT_SECRET": SECRET,
            "ENFORCE_ROLES": True,
            "API_PREFIX": "/api",
            "LOG_LEVEL": "WARNING",
        },
        db=db,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    def make(role):
        user = {"_id": ObjectId(), "email": f"{role}@example.com", "role": role}
        token = create_token(user, secret=SECRET, expires_days=7)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def incident_payload():
    def make(**overrides):
        payload = {
            "title": "Kitchen fire",
            "description": "Smoke coming from the third floor",
            "type": "fire",
            "severity": "high",
            "location": {"type": "Point", "coordinates": [72.8227334, 19.4126475]},
            "reportedBy": "anonymous",
        }
        payload.update(overrides)
        return payload
    return make
