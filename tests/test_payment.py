import pytest
from sqlalchemy import select

from bananary.api import payment as payment_api
from bananary.models.charge_order import ChargeOrder
from bananary.services import payment_service


@pytest.fixture
def manual_orders(monkeypatch):
    monkeypatch.setattr(payment_service, "AUTO_COMPLETE_CREDIT_PURCHASES", False)


def _create_pending(client, acct, amount=10, method="mock"):
    res = client.post("/api/credits/charge", headers=acct["headers"], json={"amount": amount, "paymentMethod": method})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["order"]["status"] == "pending"
    assert body["balance"] is None
    return body["orderId"]


async def _user_orders(db, user_id):
    return (await db.execute(select(ChargeOrder).where(ChargeOrder.user_id == user_id))).scalars().all()


def _charges(client, acct):
    txs = client.get("/api/credits/transactions", headers=acct["headers"]).json()["data"]
    return [t for t in txs if t["type"] == "charge" and t["orderId"]]


def test_order_id_format():
    order_id = payment_service.new_order_id()
    assert order_id.startswith("ORDER_")
    assert len(order_id.split("_")) == 3


def test_completing_an_order_twice_grants_once(client, register, manual_orders):
    acct = register()
    order_id = _create_pending(client, acct)

    res = client.get(f"/api/payment/order/{order_id}", headers=acct["headers"])
    assert res.json()["order"]["status"] == "pending"
    assert res.json()["order"]["credits"] == 800

    first = client.post(f"/api/payment/order/{order_id}/complete", headers=acct["headers"])
    assert first.status_code == 200
    assert first.json()["creditsAdded"] == 800
    assert first.json()["balance"] == 900
    assert first.json()["order"]["status"] == "paid"
    assert first.json()["order"]["paidAt"]

    second = client.post(f"/api/payment/order/{order_id}/complete", headers=acct["headers"])
    assert second.status_code == 200
    assert second.json()["creditsAdded"] == 0
    assert second.json()["balance"] == 900

    assert len(_charges(client, acct)) == 1


def test_cancel_pending_order(client, register, manual_orders):
    acct = register()
    order_id = _create_pending(client, acct)

    res = client.post(f"/api/payment/order/{order_id}/cancel", headers=acct["headers"])
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "cancelled"

    assert client.post(f"/api/payment/order/{order_id}/cancel", headers=acct["headers"]).status_code == 400
    assert client.post(f"/api/payment/order/{order_id}/complete", headers=acct["headers"]).status_code == 400
    assert client.get("/api/credits/balance", headers=acct["headers"]).json()["balance"] == 100


def test_orders_are_owner_scoped(client, register, manual_orders):
    owner, other = register(), register()
    order_id = _create_pending(client, owner)

    assert client.get(f"/api/payment/order/{order_id}", headers=other["headers"]).status_code == 404
    assert client.post(f"/api/payment/order/{order_id}/complete", headers=other["headers"]).status_code == 404
    assert client.post(f"/api/payment/order/{order_id}/cancel", headers=other["headers"]).status_code == 404
    assert client.get("/api/payment/order/ORDER_0_MISSING", headers=owner["headers"]).status_code == 404


def test_manual_completion_only_in_test_mode(client, register, manual_orders, monkeypatch):
    acct = register()
    order_id = _create_pending(client, acct)
    monkeypatch.setattr(payment_api, "TEST_MODE", False)

    res = client.post(f"/api/payment/order/{order_id}/complete", headers=acct["headers"])
    assert res.status_code == 403
    assert client.get(f"/api/payment/order/{order_id}", headers=acct["headers"]).json()["order"]["status"] == "pending"


def test_stripe_without_configuration(client, register, db_call):
    acct = register()
    res = client.post("/api/credits/charge", headers=acct["headers"], json={"amount": 10, "paymentMethod": "stripe"})
    assert res.status_code == 502
    assert res.json()["message"] == "Stripe is not configured"
    assert client.get("/api/credits/balance", headers=acct["headers"]).json()["balance"] == 100

    orders = db_call(_user_orders, acct["user"]["id"])
    assert [(o.payment_method, o.status) for o in orders] == [("stripe", "failed")]


def test_stripe_checkout_session(client, register, monkeypatch):
    class FakeSession:
        id = "cs_test_123"
        url = "https://checkout.stripe.test/cs_test_123"

    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return FakeSession()

    monkeypatch.setattr(payment_service, "STRIPE_SECRET_KEY", "sk_test")
    monkeypatch.setattr(payment_service.stripe.checkout.Session, "create", fake_create)

    acct = register()
    res = client.post("/api/credits/charge", headers=acct["headers"], json={"amount": 20, "paymentMethod": "stripe"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["paymentUrl"] == FakeSession.url
    assert body["order"]["status"] == "pending"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 2000
    assert captured["metadata"]["order_id"] == body["orderId"]


def test_webhook_requires_configuration(client):
    res = client.post("/api/payment/webhook/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})
    assert res.status_code == 400
    assert res.json()["message"] == "Stripe webhook not configured"


def test_webhook_rejects_bad_signature(client, monkeypatch):
    monkeypatch.setattr(payment_service, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    res = client.post("/api/payment/webhook/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=bogus"})
    assert res.status_code == 400
    assert res.json()["message"].startswith("Invalid webhook")


def test_checkout_completed_event_grants_once(client, register, manual_orders, db_call):
    acct = register()
    order_id = _create_pending(client, acct, amount=20, method="alipay")
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_live_1", "metadata": {"order_id": order_id}}},
    }

    first = db_call(payment_service.handle_stripe_event, event)
    second = db_call(payment_service.handle_stripe_event, event)
    assert first["credits_added"] == 1600
    assert second["credits_added"] == 0

    assert client.get("/api/credits/balance", headers=acct["headers"]).json()["balance"] == 1700
    assert len(_charges(client, acct)) == 1


def test_expired_checkout_fails_order(client, register, manual_orders, db_call):
    acct = register()
    order_id = _create_pending(client, acct)
    event = {"type": "checkout.session.expired", "data": {"object": {"id": "cs_x", "metadata": {"order_id": order_id}}}}

    assert db_call(payment_service.handle_stripe_event, event) == {"received": True}
    order = client.get(f"/api/payment/order/{order_id}", headers=acct["headers"]).json()["order"]
    assert order["status"] == "failed"
