import hashlib
import hmac

import pytest
from fastapi.testclient import TestClient

from coursepay.config import Settings
from coursepay.main import create_app
from coursepay.models import Payment, User
from coursepay.razorpay_service import expected_signature, signature_matches
from coursepay.security import PasswordHasher
from coursepay.services import COUPON_CODE, MAX_AMOUNT, REDIRECT_URL


def sign(order_id, payment_id, secret="s"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def create_order(client, headers, amount=499):
    response = client.post("/api/payments/create-order", json={"amount": amount}, headers=headers)
    assert response.status_code == 200, response.json()
    return response.json()["data"]["order"]["id"]


def test_expected_signature_is_hmac_sha256_hex():
    assert expected_signature("order_1", "pay_1", "s") == sign("order_1", "pay_1", "s")
    assert signature_matches("order_1", "pay_1", sign("order_1", "pay_1"), "s")
    assert not signature_matches("order_1", "pay_1", "deadbeef", "s")
    assert not signature_matches("order_1", "pay_1", sign("order_1", "pay_1", "other"), "s")


def test_create_order_sends_minor_units_and_stores_pending_payment(
    client, auth_headers, gateway, session_factory
):
    headers = auth_headers()

    response = client.post("/api/payments/create-order", json={"amount": 499}, headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["amount"] == 499
    assert data["order"]["id"] == "order_test_1"
    assert data["order"]["amount"] == 49900

    call = gateway.calls[0]
    assert call["amount"] == 499
    assert call["receipt"].startswith("user_")
    assert call["notes"]["userName"] == "Ada"

    db = session_factory()
    payment = db.query(Payment).filter_by(razorpay_order_id="order_test_1").first()
    assert payment.amount == 499
    assert payment.status == "created"
    assert payment.verified is False
    assert payment.verified_at is None
    assert payment.user_id == call["notes"]["userId"]
    db.close()


def test_create_order_accepts_integral_float(client, auth_headers):
    response = client.post("/api/payments/create-order", json={"amount": 10.0}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["data"]["amount"] == 10


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"amount": 0},
        {"amount": -5},
        {"amount": 2.5},
        {"amount": None},
        {"amount": True},
        {"amount": "abc"},
        {"amount": "100"},
        {"amount": 10**20},
        {"amount": MAX_AMOUNT + 1},
    ],
)
def test_create_order_rejects_invalid_amount(client, auth_headers, gateway, body):
    response = client.post("/api/payments/create-order", json=body, headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["message"] == "Valid amount is required"
    assert gateway.calls == []


def test_create_order_accepts_largest_storable_amount(client, auth_headers, gateway, session_factory):
    response = client.post(
        "/api/payments/create-order", json={"amount": MAX_AMOUNT}, headers=auth_headers()
    )

    assert response.status_code == 200
    assert gateway.calls[0]["amount"] == MAX_AMOUNT
    db = session_factory()
    assert db.query(Payment).one().amount == MAX_AMOUNT
    db.close()


def test_create_order_requires_token(client, gateway):
    response = client.post("/api/payments/create-order", json={"amount": 100})

    assert response.status_code == 401
    assert gateway.calls == []


def test_create_order_provider_failure_stores_nothing(client, auth_headers, gateway, mocker, session_factory):
    mocker.patch.object(gateway, "create_order", side_effect=Exception("Razorpay unavailable"))

    response = client.post("/api/payments/create-order", json={"amount": 100}, headers=auth_headers())

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Failed to create payment order"
    assert body["error"] == "Razorpay unavailable"

    db = session_factory()
    assert db.query(Payment).count() == 0
    db.close()


def test_provider_error_detail_hidden_in_production(gateway, mocker):
    production = Settings(
        database_url="sqlite://", jwt_secret="secret", environment="production"
    )
    app = create_app(production, password_hasher=PasswordHasher(rounds=4), payment_gateway=gateway)
    mocker.patch.object(gateway, "create_order", side_effect=Exception("Razorpay unavailable"))

    with TestClient(app) as client:
        signup = client.post(
            "/api/auth/signup",
            json={"name": "Ada", "email": "ada@example.com", "password": "correct-horse"},
        )
        token = signup.json()["data"]["token"]
        response = client.post(
            "/api/payments/create-order",
            json={"amount": 100},
            headers={"Authorization": f"Bearer {token}"},
        )

    assert response.status_code == 500
    assert "error" not in response.json()


def test_payments_disabled_without_provider_credentials(settings):
    app = create_app(settings, password_hasher=PasswordHasher(rounds=4))

    with TestClient(app) as client:
        signup = client.post(
            "/api/auth/signup",
            json={"name": "Ada", "email": "ada@example.com", "password": "correct-horse"},
        )
        headers = {"Authorization": f"Bearer {signup.json()['data']['token']}"}
        create = client.post("/api/payments/create-order", json={"amount": 100}, headers=headers)
        verify = client.post(
            "/api/payments/verify",
            json={
                "razorpay_order_id": "order_1",
                "razorpay_payment_id": "pay_1",
                "razorpay_signature": sign("order_1", "pay_1"),
            },
            headers=headers,
        )

    assert create.status_code == 500
    assert create.json()["message"] == "Payment service not configured"
    assert verify.status_code == 500
    assert verify.json()["message"] == "Payment service not configured"


def test_verify_completes_payment(client, auth_headers, session_factory):
    headers = auth_headers()
    order_id = create_order(client, headers)

    response = client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": sign(order_id, "pay_1"),
        },
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Payment verified successfully"
    assert body["data"] == {"couponCode": COUPON_CODE, "redirectUrl": REDIRECT_URL}

    db = session_factory()
    payments = db.query(Payment).all()
    assert len(payments) == 1
    payment = payments[0]
    assert payment.status == "completed"
    assert payment.verified is True
    assert payment.verified_at is not None
    assert payment.razorpay_payment_id == "pay_1"
    assert payment.razorpay_signature == sign(order_id, "pay_1")
    db.close()


def test_verify_again_keeps_first_verification(client, auth_headers, session_factory):
    headers = auth_headers()
    order_id = create_order(client, headers)
    payload = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": sign(order_id, "pay_1"),
    }
    client.post("/api/payments/verify", json=payload, headers=headers)

    db = session_factory()
    first_verified_at = db.query(Payment).one().verified_at
    db.close()

    replay = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_2",
        "razorpay_signature": sign(order_id, "pay_2"),
    }
    response = client.post("/api/payments/verify", json=replay, headers=headers)

    assert response.status_code == 200
    db = session_factory()
    payment = db.query(Payment).one()
    assert payment.verified_at == first_verified_at
    assert payment.razorpay_payment_id == "pay_1"
    db.close()


@pytest.mark.parametrize("signature", ["", "deadbeef", sign("order_test_1", "pay_1", "wrong-secret")])
def test_verify_with_bad_signature_leaves_payment_unchanged(
    client, auth_headers, session_factory, signature
):
    headers = auth_headers()
    order_id = create_order(client, headers)

    response = client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": signature,
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["success"] is False

    db = session_factory()
    payment = db.query(Payment).one()
    assert payment.status == "created"
    assert payment.verified is False
    assert payment.verified_at is None
    assert payment.razorpay_payment_id is None
    db.close()


def test_verify_signature_mismatch_message(client, auth_headers):
    headers = auth_headers()
    order_id = create_order(client, headers)

    response = client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "deadbeef",
        },
        headers=headers,
    )

    assert response.json()["message"] == "Payment verification failed"


def test_verify_unknown_order_is_not_found(client, auth_headers, session_factory):
    headers = auth_headers()
    create_order(client, headers)

    response = client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": "order_missing",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": sign("order_missing", "pay_1"),
        },
        headers=headers,
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Payment record not found"

    db = session_factory()
    assert db.query(Payment).one().status == "created"
    db.close()


def test_verify_other_users_order_is_not_found(client, auth_headers, session_factory):
    owner = auth_headers("ada@example.com")
    intruder = auth_headers("bob@example.com")
    order_id = create_order(client, owner)

    response = client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": sign(order_id, "pay_1"),
        },
        headers=intruder,
    )

    assert response.status_code == 404
    db = session_factory()
    assert db.query(Payment).one().verified is False
    db.close()


def test_history_lists_own_payments_newest_first(client, auth_headers):
    ada = auth_headers("ada@example.com")
    bob = auth_headers("bob@example.com")
    first = create_order(client, ada, amount=100)
    create_order(client, bob, amount=300)
    second = create_order(client, ada, amount=200)
    client.post(
        "/api/payments/verify",
        json={
            "razorpay_order_id": second,
            "razorpay_payment_id": "pay_2",
            "razorpay_signature": sign(second, "pay_2"),
        },
        headers=ada,
    )

    response = client.get("/api/payments/history", headers=ada)

    assert response.status_code == 200
    payments = response.json()["data"]["payments"]
    assert [p["amount"] for p in payments] == [200, 100]
    assert set(payments[0]) == {"id", "amount", "status", "verified", "created_at", "razorpay_payment_id"}
    assert payments[0]["status"] == "completed"
    assert payments[0]["razorpay_payment_id"] == "pay_2"
    assert payments[1]["status"] == "created"
    assert payments[1]["verified"] is False
    assert first != second


def test_history_requires_token(client):
    assert client.get("/api/payments/history").status_code == 401


def test_deleting_user_removes_payments(client, auth_headers, session_factory):
    headers = auth_headers()
    create_order(client, headers)

    db = session_factory()
    db.delete(db.query(User).one())
    db.commit()
    assert db.query(Payment).count() == 0
    db.close()
