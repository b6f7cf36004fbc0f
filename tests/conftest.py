import pytest
from fastapi.testclient import TestClient

from coursepay.config import Settings
from coursepay.main import create_app
from coursepay.security import PasswordHasher

TEST_JWT_SECRET = "test-jwt-secret"
TEST_KEY_SECRET = "s"


class FakeGateway:
    """Stands in for Razorpay; records every order request."""

    def __init__(self, key_id="rzp_test_key", key_secret=TEST_KEY_SECRET):
        self.key_id = key_id
        self.key_secret = key_secret
        self.calls = []

    def create_order(self, amount, receipt, notes):
        self.calls.append({"amount": amount, "receipt": receipt, "notes": notes})
        return {
            "id": f"order_test_{len(self.calls)}",
            "entity": "order",
            "amount": amount * 100,
            "currency": "INR",
            "receipt": receipt,
            "status": "created",
        }


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", jwt_secret=TEST_JWT_SECRET, environment="test")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def fastapi_app(settings, gateway):
    # Cheap bcrypt cost keeps the suite fast
    return create_app(settings, password_hasher=PasswordHasher(rounds=4), payment_gateway=gateway)


@pytest.fixture
def client(fastapi_app):
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def session_factory(fastapi_app):
    return fastapi_app.state.session_factory


@pytest.fixture
def signup(client):
    def _signup(email="ada@example.com", password="correct-horse", name="Ada"):
        response = client.post(
            "/api/auth/signup",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.json()
        return response.json()["data"]

    return _signup


@pytest.fixture
def auth_headers(signup):
    def _headers(email="ada@example.com"):
        token = signup(email=email)["token"]
        return {"Authorization": f"Bearer {token}"}

    return _headers
