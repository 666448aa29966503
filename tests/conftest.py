import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PHONEPE_SALT_KEY", "test-salt-key")
os.environ.setdefault("PHONEPE_MERCHANT_ID", "TESTMERCHANT")
os.environ.setdefault("PHONEPE_SALT_INDEX", "1")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STATUS_REFRESH_INTERVAL_SECONDS", "0")

import json
from datetime import date
from typing import Any, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from core.config import Settings, get_settings
from core.database import get_session
from main import app
from models.models import Mess, User, UserRole
from routes.payment import get_phonepe_client
from services.phonepe_client import PhonePeClient, decode_payload


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return get_settings()


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


# ============================================================
# Fake PhonePe (httpx.MockTransport)
# ============================================================
class FakePhonePe:
    """Answers pay and status calls like the PhonePe sandbox does."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.pay_ok = True
        self.status_codes: Dict[str, str] = {}
        self.status_amounts: Dict[str, int] = {}
        self.fail_transport = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_transport > 0:
            self.fail_transport -= 1
            raise httpx.ConnectError("connection refused", request=request)

        if request.url.path.endswith("/pg/v1/pay"):
            if not self.pay_ok:
                return httpx.Response(400, json={"success": False, "code": "BAD_REQUEST", "message": "Invalid request"})
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "code": "PAYMENT_INITIATED",
                    "data": {"instrumentResponse": {"redirectInfo": {"url": "https://pay.example/checkout"}}},
                },
            )

        transaction_id = request.url.path.rsplit("/", 1)[-1]
        code = self.status_codes.get(transaction_id, "PAYMENT_PENDING")
        data: Dict[str, Any] = {"merchantTransactionId": transaction_id, "transactionId": f"PP_{transaction_id}"}
        if transaction_id in self.status_amounts:
            data["amount"] = self.status_amounts[transaction_id]
        return httpx.Response(200, json={"success": code == "PAYMENT_SUCCESS", "code": code, "data": data})

    def pay_payloads(self) -> List[Dict[str, Any]]:
        return [
            decode_payload(json.loads(r.content)["request"])
            for r in self.requests
            if r.url.path.endswith("/pg/v1/pay")
        ]


@pytest.fixture(name="fake_phonepe")
def fake_phonepe_fixture():
    return FakePhonePe()


@pytest.fixture(name="gateway")
def gateway_fixture(settings, fake_phonepe):
    return PhonePeClient(settings, transport=httpx.MockTransport(fake_phonepe.handler), retry_backoff=0)


@pytest.fixture(name="client")
def client_fixture(session, settings, gateway):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_phonepe_client] = lambda: gateway
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# ============================================================
# Identities
# ============================================================
def make_token(user_id: str, settings: Settings, **claims) -> str:
    payload = {"sub": user_id, **claims}
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(settings):
    def _headers(user_id: str, **claims) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, settings, **claims)}"}

    return _headers


@pytest.fixture(name="mess")
def mess_fixture(session) -> Mess:
    mess = Mess(name="Annapurna Mess")
    session.add(mess)
    session.commit()
    session.refresh(mess)
    return mess


@pytest.fixture(name="member_user")
def member_user_fixture(session, mess) -> User:
    user = User(id="user-1", name="Ravi", email="ravi@example.com", mobile_number="9000000001", mess_id=mess.id)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="admin_user")
def admin_user_fixture(session, mess) -> User:
    admin = User(id="admin-1", name="Asha", email="asha@example.com", role=UserRole.ADMIN.value, mess_id=mess.id)
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


@pytest.fixture(name="today")
def today_fixture() -> date:
    return date.today()
