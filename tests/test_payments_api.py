import uuid
from datetime import timedelta

import pytest

from appprompt.db import SessionLocal
from appprompt.models import PaymentIntent, User
from appprompt.services.entitlement import as_utc
from appprompt.services.pixgo import (
    GatewayUnavailable,
    PixCharge,
    PixGatewayError,
    PixStatus,
)
from appprompt.services.reconciliation import add_months

from tests.utils.auth import build_auth_headers


class FakeProvider:
    """In-memory stand-in for PixGo."""

    def __init__(self):
        self.statuses: dict[str, str] = {}
        self.created: list[dict] = []

    async def create(self, user_id, name, email, tax_id):
        payment_id = f"pix_{uuid.uuid4().hex}"
        self.created.append(
            {"user_id": user_id, "name": name, "email": email, "tax_id": tax_id}
        )
        self.statuses[payment_id] = "pending"
        return PixCharge(
            payment_id=payment_id,
            qr_image_url=f"https://pixgo.test/qr/{payment_id}.png",
            qr_code_text="00020126580014br.gov.bcb.pix",
            raw={"payment_id": payment_id, "expires_at": "2026-03-10T12:30:00Z"},
        )

    async def status(self, payment_id):
        status = self.statuses.get(payment_id, "")
        return PixStatus(
            status=status,
            raw={"success": True, "data": {"payment_id": payment_id, "status": status}},
        )


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr("appprompt.controllers.payments.create_payment_intent", fake.create)
    monkeypatch.setattr("appprompt.controllers.payments.get_payment_status", fake.status)
    return fake


def _create(client, user_id: int, tax_id: str | None = "12345678900"):
    body = {"userId": user_id, "name": "Ana", "email": "ana@example.com"}
    if tax_id is not None:
        body["taxId"] = tax_id
    return client.post(
        "/api/payment/create", headers=build_auth_headers(user_id), json=body
    )


def _user_row(user_id: int) -> User:
    with SessionLocal() as session:
        return session.get(User, user_id)


def test_create_payment(client, provider, make_user):
    user = make_user()
    resp = _create(client, user.id)
    assert resp.status_code == 200
    data = resp.json()
    assert data["paymentId"].startswith("pix_")
    assert data["qrImageUrl"].endswith(".png")
    assert data["qrCodeText"].startswith("000201")
    assert data["amount"] == 19.9
    assert provider.created[0]["tax_id"] == "12345678900"

    assert _user_row(user.id).pix_payment_id == data["paymentId"]
    with SessionLocal() as session:
        intent = (
            session.query(PaymentIntent)
            .filter_by(provider_payment_id=data["paymentId"])
            .one()
        )
        assert intent.user_id == user.id
        assert intent.amount == 1990
        assert intent.status == "pending"


def test_create_payment_accepts_cpf_field(client, provider, make_user):
    user = make_user()
    resp = client.post(
        "/api/payment/create",
        headers=build_auth_headers(user.id),
        json={"userId": user.id, "cpf": "98765432100"},
    )
    assert resp.status_code == 200
    assert provider.created[0]["tax_id"] == "98765432100"
    assert provider.created[0]["name"] == "Test User"


@pytest.mark.parametrize("tax_id", [None, "", "   "])
def test_create_payment_requires_tax_id(client, provider, make_user, tax_id):
    user = make_user()
    resp = _create(client, user.id, tax_id=tax_id)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "TAX_ID_REQUIRED"
    assert provider.created == []


def test_create_payment_user_mismatch(client, provider, make_user):
    user = make_user()
    other = make_user()
    resp = client.post(
        "/api/payment/create",
        headers=build_auth_headers(other.id),
        json={"userId": user.id, "taxId": "12345678900"},
    )
    assert resp.status_code == 401


def test_create_payment_requires_token(client, provider):
    resp = client.post("/api/payment/create", json={"userId": 1, "taxId": "1"})
    assert resp.status_code == 401


def test_create_payment_provider_refusal(client, monkeypatch, make_user):
    async def refuse(*args):
        raise PixGatewayError("CPF inválido")

    monkeypatch.setattr("appprompt.controllers.payments.create_payment_intent", refuse)
    user = make_user()
    resp = _create(client, user.id)
    assert resp.status_code == 400
    assert resp.json()["detail"] == {"code": "PAYMENT_FAILED", "message": "CPF inválido"}
    assert _user_row(user.id).pix_payment_id is None


def test_create_payment_gateway_down(client, monkeypatch, make_user):
    async def down(*args):
        raise GatewayUnavailable("Payment provider unavailable")

    monkeypatch.setattr("appprompt.controllers.payments.create_payment_intent", down)
    user = make_user()
    resp = _create(client, user.id)
    assert resp.status_code == 500
    assert resp.json()["detail"]["code"] == "GATEWAY_UNAVAILABLE"


def test_pending_then_completed(client, clock, provider, make_user):
    user = make_user(trial_ends_at=clock.now - timedelta(hours=1))
    payment_id = _create(client, user.id).json()["paymentId"]

    for _ in range(3):
        clock.advance(seconds=5)
        resp = client.get(f"/api/payment/status/{payment_id}")
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "pending"
    assert _user_row(user.id).subscription_ends_at is None

    provider.statuses[payment_id] = "completed"
    clock.advance(seconds=5)
    paid_at = clock.now
    resp = client.get(f"/api/payment/status/{payment_id}")
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "data": {"payment_id": payment_id, "status": "completed"},
    }
    assert as_utc(_user_row(user.id).subscription_ends_at) == add_months(paid_at, 1)

    status = client.get(f"/api/auth/status/{user.id}").json()
    assert status["is_subscriber"] is True
    assert status["is_trial_active"] is False


def test_repeated_polls_extend_once(client, clock, provider, make_user):
    user = make_user()
    payment_id = _create(client, user.id).json()["paymentId"]
    provider.statuses[payment_id] = "completed"
    first_poll = clock.now

    for _ in range(5):
        assert client.get(f"/api/payment/status/{payment_id}").status_code == 200
        clock.advance(seconds=5)

    assert as_utc(_user_row(user.id).subscription_ends_at) == add_months(first_poll, 1)


def test_status_gateway_down(client, monkeypatch):
    async def down(payment_id):
        raise GatewayUnavailable("Payment provider unavailable")

    monkeypatch.setattr("appprompt.controllers.payments.get_payment_status", down)
    resp = client.get("/api/payment/status/pix_any")
    assert resp.status_code == 500
    assert resp.json()["detail"]["code"] == "GATEWAY_UNAVAILABLE"


def test_new_payment_overwrites_pointer(client, provider, make_user):
    user = make_user()
    first = _create(client, user.id).json()["paymentId"]
    second = _create(client, user.id).json()["paymentId"]
    assert first != second
    assert _user_row(user.id).pix_payment_id == second
    with SessionLocal() as session:
        assert session.query(PaymentIntent).filter_by(user_id=user.id).count() == 2


def test_payment_metrics_exposed(client, provider, make_user):
    user = make_user()
    _create(client, user.id)
    body = client.get("/metrics").text
    assert "payment_created_total" in body
    assert "payment_reconciled_total" in body
