from sqlalchemy import func, select

from bananary.models.user import User
from tests.conftest import PASSWORD, auth, random_phone, random_username


async def _count_users(db, username=None, phone=None):
    q = select(func.count(User.id))
    if username:
        q = q.where(User.username == username)
    if phone:
        q = q.where(User.phone == phone)
    return (await db.execute(q)).scalar_one()


def test_register_returns_token_and_bonus(client):
    username, phone = random_username(), random_phone()
    res = client.post("/api/auth/register", json={
        "username": username, "phone": phone, "password": PASSWORD, "confirmPassword": PASSWORD,
    })
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["username"] == username
    assert body["user"]["phone"] == phone
    assert body["user"]["credits"] == 100
    assert "createdAt" in body["user"]


def test_register_duplicate_username_creates_nothing(client, register, db_call):
    acct = register()
    res = client.post("/api/auth/register", json={
        "username": acct["username"], "phone": random_phone(), "password": PASSWORD,
    })
    assert res.status_code == 409
    assert res.json()["success"] is False
    assert db_call(_count_users, username=acct["username"]) == 1


def test_register_duplicate_phone_creates_nothing(client, register, db_call):
    acct = register()
    new_name = random_username()
    res = client.post("/api/auth/register", json={
        "username": new_name, "phone": acct["phone"], "password": PASSWORD,
    })
    assert res.status_code == 409
    assert db_call(_count_users, phone=acct["phone"]) == 1
    assert db_call(_count_users, username=new_name) == 0


def test_register_validation(client):
    base = {"username": random_username(), "phone": random_phone(), "password": PASSWORD}

    res = client.post("/api/auth/register", json={**base, "confirmPassword": "different"})
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Passwords do not match"}

    res = client.post("/api/auth/register", json={**base, "phone": "12345"})
    assert res.status_code == 400
    assert "Invalid phone number" in res.json()["message"]

    res = client.post("/api/auth/register", json={**base, "password": "123"})
    assert res.status_code == 400

    res = client.post("/api/auth/register", json={**base, "username": "ab"})
    assert res.status_code == 400


def test_username_length_counts_without_padding(client, register):
    base = {"phone": random_phone(), "password": PASSWORD}
    for blank in ("      ", "  ab  "):
        res = client.post("/api/auth/register", json={**base, "username": blank})
        assert res.status_code == 400
        assert "at least 3 characters" in res.json()["message"]

    name = random_username()
    acct = register(username=f"  {name}  ")
    assert acct["user"]["username"] == name

    res = client.put("/api/user/profile", headers=acct["headers"], json={"username": "   "})
    assert res.status_code == 400
    assert client.get("/api/user/profile", headers=acct["headers"]).json()["user"]["username"] == name


def test_login_by_username_and_phone(client, register):
    acct = register()
    for identifier in (acct["username"], acct["phone"]):
        res = client.post("/api/auth/login", json={"identifier": identifier, "password": PASSWORD})
        assert res.status_code == 200, res.text
        assert res.json()["user"]["id"] == acct["user"]["id"]


def test_login_failures_do_not_leak_which_field(client, register):
    acct = register()
    unknown = client.post("/api/auth/login", json={"identifier": "nobody_" + random_username(), "password": PASSWORD})
    wrong_pw = client.post("/api/auth/login", json={"identifier": acct["username"], "password": "wrong-password"})
    no_pw = client.post("/api/auth/login", json={"identifier": acct["username"]})

    assert unknown.status_code == wrong_pw.status_code == no_pw.status_code == 401
    assert unknown.json() == wrong_pw.json() == no_pw.json() == {"success": False, "message": "Invalid credentials"}


def test_phone_login_with_verification_code(client, register):
    acct = register()
    res = client.post("/api/auth/send-verification-code", json={"phone": acct["phone"], "type": "login"})
    assert res.status_code == 200
    code = res.json()["code"]
    assert len(code) == 6 and code.isdigit()

    login = {"loginType": "phone", "identifier": acct["phone"], "verificationCode": code}
    res = client.post("/api/auth/login", json=login)
    assert res.status_code == 200
    assert res.json()["user"]["id"] == acct["user"]["id"]

    # single use
    res = client.post("/api/auth/login", json=login)
    assert res.status_code == 401


def test_register_code_rejected_for_existing_phone(client, register):
    acct = register()
    res = client.post("/api/auth/send-verification-code", json={"phone": acct["phone"], "type": "register"})
    assert res.status_code == 409


def test_send_code_validates_type(client):
    res = client.post("/api/auth/send-verification-code", json={"phone": random_phone(), "type": "bogus"})
    assert res.status_code == 400


def test_reset_password(client, register):
    acct = register()
    code = client.post(
        "/api/auth/send-verification-code", json={"phone": acct["phone"], "type": "reset"}
    ).json()["code"]

    res = client.post("/api/auth/reset-password", json={
        "phone": acct["phone"], "verificationCode": "abcdef", "newPassword": "newpass1",
    })
    assert res.status_code == 400

    res = client.post("/api/auth/reset-password", json={
        "phone": acct["phone"], "verificationCode": code, "newPassword": "newpass1",
    })
    assert res.status_code == 200

    assert client.post("/api/auth/login", json={"identifier": acct["username"], "password": PASSWORD}).status_code == 401
    assert client.post("/api/auth/login", json={"identifier": acct["username"], "password": "newpass1"}).status_code == 200


def test_me_and_profile_require_token(client, register):
    assert client.get("/api/user/profile").status_code == 401
    assert client.get("/api/user/profile", headers=auth("not-a-jwt")).json() == {
        "success": False, "message": "Invalid token",
    }

    acct = register()
    res = client.get("/api/auth/me", headers=acct["headers"])
    assert res.status_code == 200
    assert res.json()["user"]["username"] == acct["username"]


def test_profile_update_and_conflicts(client, register):
    a = register()
    b = register()

    res = client.put("/api/user/profile", headers=a["headers"], json={"username": b["username"]})
    assert res.status_code == 409

    res = client.put("/api/user/profile", headers=a["headers"], json={"phone": b["phone"]})
    assert res.status_code == 409

    new_name = random_username()
    res = client.put("/api/user/profile", headers=a["headers"], json={"username": new_name, "email": "a@example.com"})
    assert res.status_code == 200
    assert res.json()["user"]["username"] == new_name
    assert res.json()["user"]["email"] == "a@example.com"

    profile = client.get("/api/user/profile", headers=a["headers"]).json()
    assert profile["user"]["username"] == new_name


def test_change_password(client, register):
    acct = register()
    res = client.put("/api/user/password", headers=acct["headers"], json={
        "currentPassword": "wrong-one", "newPassword": "another1",
    })
    assert res.status_code == 400

    res = client.put("/api/user/password", headers=acct["headers"], json={
        "currentPassword": PASSWORD, "newPassword": "another1",
    })
    assert res.status_code == 200
    assert client.post("/api/auth/login", json={"identifier": acct["phone"], "password": "another1"}).status_code == 200


def test_unknown_route_uses_envelope(client):
    res = client.get("/api/does-not-exist")
    assert res.status_code == 404
    assert res.json()["success"] is False
