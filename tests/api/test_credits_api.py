from __future__ import annotations

from types import SimpleNamespace
from uuid import UUID

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import credits, credits_helpers
from app.economy.charge.errors import InsufficientCreditsError
from app.economy.identity.types import ResolvedAccount
from app.economy.ledger.types import MutationResult
from app.main import app
from tests.api.helpers import DummySessionLocal, caller_headers, fake_settings

ACCOUNT_ID = UUID("7a1c2b3d-4e5f-4a6b-8c7d-9e0f1a2b3c4d")


def _patch_common(monkeypatch) -> None:
    monkeypatch.setattr(credits_helpers, "get_settings", lambda: fake_settings())
    monkeypatch.setattr(credits, "get_settings", lambda: fake_settings())
    monkeypatch.setattr(credits, "SessionLocal", DummySessionLocal())

    async def _resolve(session, identity, *, now_utc, starting_credits):
        assert identity.email == "user@example.com"
        assert starting_credits == 50
        return ResolvedAccount(account_id=ACCOUNT_ID, created=False)

    monkeypatch.setattr(credits.IdentityResolver, "resolve", _resolve)


def test_charge_rejects_missing_gateway_token(monkeypatch) -> None:
    monkeypatch.setattr(credits_helpers, "get_settings", lambda: fake_settings())

    client = TestClient(app)
    response = client.post("/credits/charge", json={"amount": 5}, headers={"X-Identity-Subject": "sub"})

    assert response.status_code == 401
    assert response.json() == {"detail": {"code": "unauthenticated"}}


def test_charge_rejects_invalid_amount_before_store_access(monkeypatch) -> None:
    monkeypatch.setattr(credits_helpers, "get_settings", lambda: fake_settings())

    def _fail_session_local():
        raise AssertionError("store must not be touched")

    monkeypatch.setattr(credits, "SessionLocal", SimpleNamespace(begin=_fail_session_local))

    client = TestClient(app)
    for amount in (0, -3, 1.5, "abc", None, True, 10**19, "1e12", 1_000_000_001):
        response = client.post("/credits/charge", json={"amount": amount}, headers=caller_headers())
        assert response.status_code == 400
        assert response.json() == {"detail": {"code": "invalid_amount"}}


def test_charge_returns_new_balance(monkeypatch) -> None:
    _patch_common(monkeypatch)
    captured: dict[str, object] = {}

    async def _charge(session, **kwargs):
        captured.update(kwargs)
        return MutationResult(
            account_id=ACCOUNT_ID,
            transaction_id=41,
            change_amount=-5,
            before_balance=20,
            credits_remaining=15,
            credits_used=5,
            blocked=False,
        )

    monkeypatch.setattr(credits.ChargeService, "charge", _charge)

    client = TestClient(app)
    response = client.post(
        "/credits/charge",
        json={"amount": 5, "action": "session_start", "correlation_token": "sess-1"},
        headers=caller_headers(),
    )

    assert response.status_code == 200
    assert response.json() == {
        "user_id": str(ACCOUNT_ID),
        "credits_remaining": 15,
        "credits_used": 5,
        "blocked": False,
        "transaction_id": 41,
        "idempotent_replay": False,
    }
    assert captured["account_id"] == ACCOUNT_ID
    assert captured["raw_amount"] == 5
    assert captured["action"] == "session_start"
    assert captured["correlation_token"] == "sess-1"


def test_charge_on_blocked_account_returns_402(monkeypatch) -> None:
    _patch_common(monkeypatch)

    async def _charge(session, **kwargs):
        raise InsufficientCreditsError(credits_remaining=-4)

    monkeypatch.setattr(credits.ChargeService, "charge", _charge)

    client = TestClient(app)
    response = client.post("/credits/charge", json={"amount": 5}, headers=caller_headers())

    assert response.status_code == 402
    assert response.json() == {
        "detail": {"code": "insufficient_credits", "blocked": True, "credits_remaining": -4},
    }


def test_charge_store_failure_returns_internal_error(monkeypatch) -> None:
    _patch_common(monkeypatch)

    async def _charge(session, **kwargs):
        raise SQLAlchemyError("connection reset")

    monkeypatch.setattr(credits.ChargeService, "charge", _charge)

    client = TestClient(app)
    response = client.post("/credits/charge", json={"amount": 5}, headers=caller_headers())

    assert response.status_code == 500
    assert response.json() == {"detail": {"code": "internal_error"}}


def test_balance_read_returns_projection(monkeypatch) -> None:
    _patch_common(monkeypatch)

    async def _lookup(session, identity):
        return SimpleNamespace(
            id=ACCOUNT_ID,
            credits_remaining=900,
            credits_used=300,
            plan="pro",
            blocked=False,
        )

    monkeypatch.setattr(credits.IdentityResolver, "lookup", _lookup)

    client = TestClient(app)
    response = client.get("/credits/me", headers=caller_headers())

    assert response.status_code == 200
    assert response.json() == {
        "user_id": str(ACCOUNT_ID),
        "credits_remaining": 900,
        "credits_used": 300,
        "plan": "pro",
        "blocked": False,
        "plan_allowance": 1200,
    }


def test_balance_read_does_not_provision(monkeypatch) -> None:
    _patch_common(monkeypatch)

    async def _lookup(session, identity):
        return None

    async def _resolve(*args, **kwargs):
        raise AssertionError("balance read must not provision accounts")

    monkeypatch.setattr(credits.IdentityResolver, "lookup", _lookup)
    monkeypatch.setattr(credits.IdentityResolver, "resolve", _resolve)

    client = TestClient(app)
    response = client.get("/credits/me", headers=caller_headers())

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "account_not_found"}}


def test_balance_read_requires_identity(monkeypatch) -> None:
    monkeypatch.setattr(credits_helpers, "get_settings", lambda: fake_settings())

    client = TestClient(app)
    response = client.get("/credits/me", headers={"X-Gateway-Token": "gateway-secret"})

    assert response.status_code == 401
