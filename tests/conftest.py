import asyncio
import os
import random
import tempfile
import uuid

_TMP = tempfile.mkdtemp(prefix="bananary-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["TEST_MODE"] = "true"
os.environ["AUTO_COMPLETE_CREDIT_PURCHASES"] = "true"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from bananary.core.database import SessionLocal
from bananary.server import app

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


def random_phone() -> str:
    return "138" + "".join(random.choice("0123456789") for _ in range(8))


def random_username() -> str:
    return "user_" + uuid.uuid4().hex[:10]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """Create a fresh account; returns {"token", "user", "headers", "username", "phone"}."""
    def _register(**overrides):
        payload = {
            "username": random_username(),
            "phone": random_phone(),
            "password": PASSWORD,
            "confirmPassword": PASSWORD,
        }
        payload.update(overrides)
        res = client.post("/api/auth/register", json=payload)
        assert res.status_code == 201, res.text
        body = res.json()
        return {
            "token": body["token"],
            "user": body["user"],
            "headers": auth(body["token"]),
            "username": payload["username"],
            "phone": payload["phone"],
        }
    return _register


@pytest.fixture
def db_call():
    """Run `fn(db, *args)` against the test database and return its result."""
    def _call(fn, *args, **kwargs):
        async def _go():
            async with SessionLocal() as db:
                return await fn(db, *args, **kwargs)
        return asyncio.run(_go())
    return _call
