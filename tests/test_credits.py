import asyncio

import pytest

from bananary.core.database import SessionLocal
from bananary.services import credit_service


def _balance(client, acct):
    res = client.get("/api/credits/balance", headers=acct["headers"])
    assert res.status_code == 200
    return res.json()["balance"]


def _transactions(client, acct, **params):
    res = client.get("/api/credits/transactions", headers=acct["headers"], params=params)
    assert res.status_code == 200
    return res.json()


def test_signup_bonus_is_a_ledger_entry(client, register):
    acct = register()
    assert _balance(client, acct) == 100

    txs = _transactions(client, acct)["data"]
    assert len(txs) == 1
    assert txs[0]["type"] == "charge"
    assert txs[0]["amount"] == 100
    assert txs[0]["balance"] == 100
    assert txs[0]["description"] == "Registration bonus"


def test_consume_more_than_balance_changes_nothing(client, register):
    acct = register()
    res = client.post("/api/credits/consume", headers=acct["headers"], json={"amount": 101})
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert "Insufficient credits" in res.json()["message"]

    assert _balance(client, acct) == 100
    assert _transactions(client, acct)["pagination"]["total"] == 1


def test_consume_rejects_non_positive(client, register):
    acct = register()
    assert client.post("/api/credits/consume", headers=acct["headers"], json={"amount": 0}).status_code == 400
    assert client.post("/api/credits/consume", headers=acct["headers"], json={"amount": -5}).status_code == 400


def test_consume_then_charge_restores_balance(client, register):
    acct = register()
    res = client.post("/api/credits/consume", headers=acct["headers"], json={"amount": 30, "description": "test"})
    assert res.status_code == 200
    assert res.json()["balance"] == 70

    res = client.post("/api/credits/charge", headers=acct["headers"], json={
        "amount": 1, "credits": 30, "paymentMethod": "mock",
    })
    assert res.status_code == 200, res.text
    assert res.json()["balance"] == 100
    assert res.json()["order"]["status"] == "paid"

    txs = _transactions(client, acct)["data"]
    assert [(t["type"], t["amount"], t["balance"]) for t in txs] == [
        ("charge", 30, 100),
        ("consume", 30, 70),
        ("charge", 100, 100),
    ]
    assert txs[0]["orderId"] == res.json()["orderId"]


def test_consume_is_idempotent_on_ref_id(client, register):
    acct = register()
    body = {"amount": 10, "refId": "job-123"}
    assert client.post("/api/credits/consume", headers=acct["headers"], json=body).json()["balance"] == 90
    assert client.post("/api/credits/consume", headers=acct["headers"], json=body).json()["balance"] == 90
    assert _transactions(client, acct)["pagination"]["total"] == 2


def _concurrently(*calls):
    """Run `(fn, *args)` calls at the same time, each on its own session."""
    async def _one(fn, *args):
        async with SessionLocal() as db:
            return await fn(db, *args)

    async def _all():
        return await asyncio.gather(*(_one(*c) for c in calls), return_exceptions=True)

    return asyncio.run(_all())


def test_concurrent_retries_with_same_ref_apply_once(client, register, db_call):
    acct = register()
    user_id = acct["user"]["id"]
    call = (credit_service.consume, user_id, 10, "retry", "same-ref")

    assert _concurrently(call, call) == [90, 90]
    assert db_call(credit_service.get_balance, user_id) == 90
    assert db_call(credit_service.ledger_balance, user_id) == 90
    assert _transactions(client, acct)["pagination"]["total"] == 2


def test_concurrent_refunds_with_same_ref_apply_once(register, db_call):
    acct = register()
    user_id = acct["user"]["id"]
    db_call(credit_service.consume, user_id, 50, "job", "job-1")
    call = (credit_service.refund, user_id, 50, "job failed", "job-1")

    assert _concurrently(call, call) == [100, 100]
    assert db_call(credit_service.get_balance, user_id) == 100


def test_concurrent_consumes_cannot_overdraw(register, db_call):
    acct = register()
    user_id = acct["user"]["id"]

    results = _concurrently(
        (credit_service.consume, user_id, 60, "first", "a"),
        (credit_service.consume, user_id, 60, "second", "b"),
    )
    assert sorted(r for r in results if isinstance(r, int)) == [40]
    failures = [r for r in results if isinstance(r, credit_service.InsufficientCreditsError)]
    assert len(failures) == 1
    assert failures[0].balance == 40
    assert db_call(credit_service.get_balance, user_id) == 40
    assert db_call(credit_service.ledger_balance, user_id) == 40


def test_ledger_replay_matches_balance(client, register, db_call):
    acct = register()
    client.post("/api/credits/consume", headers=acct["headers"], json={"amount": 45})
    client.post("/api/credits/charge", headers=acct["headers"], json={"amount": 10})
    db_call(credit_service.refund, acct["user"]["id"], 5, "manual refund")

    balance = _balance(client, acct)
    assert balance == 100 - 45 + 800 + 5
    assert db_call(credit_service.ledger_balance, acct["user"]["id"]) == balance
    assert _transactions(client, acct)["data"][0]["balance"] == balance


def test_service_consume_raises_without_side_effects(register, db_call):
    acct = register()
    user_id = acct["user"]["id"]
    with pytest.raises(credit_service.InsufficientCreditsError) as exc:
        db_call(credit_service.consume, user_id, 500, "too much")
    assert exc.value.balance == 100
    assert exc.value.required == 500
    assert db_call(credit_service.get_balance, user_id) == 100


def test_packages(client):
    res = client.get("/api/credits/packages")
    assert res.status_code == 200
    body = res.json()
    assert body["creditsPerUnit"] == 80
    assert body["minAmount"] == 1
    assert [(p["price"], p["credits"]) for p in body["packages"]] == [
        (10, 800), (20, 1600), (50, 4000), (100, 8000),
    ]
    assert [p["id"] for p in body["packages"] if p["popular"]] == ["pkg_20"]


def test_charge_validation(client, register):
    acct = register()
    h = acct["headers"]
    assert client.post("/api/credits/charge", headers=h, json={"amount": 10, "credits": 801}).status_code == 400
    assert client.post("/api/credits/charge", headers=h, json={"amount": 0.5}).status_code == 400
    assert client.post("/api/credits/charge", headers=h, json={"amount": 10, "paymentMethod": "bitcoin"}).status_code == 400
    assert _balance(client, acct) == 100


def test_custom_amount_derives_credits(client, register):
    acct = register()
    res = client.post("/api/credits/charge", headers=acct["headers"], json={"amount": 12.5})
    assert res.status_code == 200
    assert res.json()["order"]["credits"] == 1000
    assert res.json()["order"]["amount"] == 12.5
    assert res.json()["balance"] == 1100


def test_transactions_pagination(client, register):
    acct = register()
    for _ in range(4):
        client.post("/api/credits/consume", headers=acct["headers"], json={"amount": 1})

    page1 = _transactions(client, acct, page=1, limit=2)
    page3 = _transactions(client, acct, page=3, limit=2)
    assert page1["pagination"] == {"page": 1, "limit": 2, "total": 5, "totalPages": 3}
    assert [t["balance"] for t in page1["data"]] == [96, 97]
    assert [t["type"] for t in page3["data"]] == ["charge"]


def test_credits_require_auth(client):
    assert client.get("/api/credits/balance").status_code == 401
    assert client.post("/api/credits/consume", json={"amount": 1}).status_code == 401
