from __future__ import annotations

from types import SimpleNamespace

GATEWAY_TOKEN = "gateway-secret"
ADMIN_SECRET = "shared-admin-secret"


class DummySessionBegin:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class DummySessionLocal:
    def begin(self) -> DummySessionBegin:
        return DummySessionBegin()


def fake_settings(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "gateway_token": GATEWAY_TOKEN,
        "admin_shared_secret": ADMIN_SECRET,
        "admin_credentials": "",
        "free_plan_starting_credits": 50,
        "recharge_duplicate_window_hours": 72,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def caller_headers(*, subject: str = "subject-1", email: str | None = "user@example.com") -> dict[str, str]:
    headers = {"X-Gateway-Token": GATEWAY_TOKEN, "X-Identity-Subject": subject}
    if email is not None:
        headers["X-Identity-Email"] = email
    return headers
