from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from app.services import alerts


class _Response:
    def raise_for_status(self) -> None:
        return None


class _Client:
    def __init__(self, calls: list[dict[str, Any]], *, fail_urls: set[str]) -> None:
        self._calls = calls
        self._fail_urls = fail_urls

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def post(self, url: str, json: dict[str, object]) -> _Response:
        self._calls.append({"url": url, "json": json})
        if url in self._fail_urls:
            raise httpx.ConnectError("delivery failed")
        return _Response()


def _settings(**overrides: object) -> SimpleNamespace:
    base = {
        "app_env": "test",
        "ops_alert_webhook_url": "",
        "ops_alert_slack_webhook_url": "",
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def _patch_http_client(
    monkeypatch: pytest.MonkeyPatch,
    calls: list[dict[str, Any]],
    *,
    fail_urls: set[str] | None = None,
) -> None:
    def factory(timeout: float) -> _Client:  # noqa: ARG001
        return _Client(calls, fail_urls=fail_urls or set())

    monkeypatch.setattr(alerts.httpx, "AsyncClient", factory)


@pytest.mark.asyncio
async def test_send_ops_alert_skips_when_no_targets(monkeypatch) -> None:
    monkeypatch.setattr(alerts, "get_settings", lambda: _settings())

    assert await alerts.send_ops_alert(event="recharge_fulfillment_failed", payload={}) is False


@pytest.mark.asyncio
async def test_fulfillment_failure_goes_to_slack_and_generic(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://hooks.example/generic",
            ops_alert_slack_webhook_url="https://hooks.example/slack",
        ),
    )
    _patch_http_client(monkeypatch, calls)

    sent = await alerts.send_ops_alert(
        event="recharge_fulfillment_failed",
        payload={"recharge_request_id": "r-1", "transaction_id": 9},
    )

    assert sent is True
    assert [call["url"] for call in calls] == ["https://hooks.example/slack", "https://hooks.example/generic"]
    assert calls[0]["json"]["text"] == "[ERROR] recharge_fulfillment_failed"
    assert calls[1]["json"]["event"] == "recharge_fulfillment_failed"
    assert calls[1]["json"]["severity"] == "error"
    assert calls[1]["json"]["payload"]["transaction_id"] == 9


@pytest.mark.asyncio
async def test_unknown_event_uses_generic_route(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://hooks.example/generic",
            ops_alert_slack_webhook_url="https://hooks.example/slack",
        ),
    )
    _patch_http_client(monkeypatch, calls)

    assert await alerts.send_ops_alert(event="something_else", payload={}) is True
    assert [call["url"] for call in calls] == ["https://hooks.example/generic"]
    assert calls[0]["json"]["severity"] == "warning"


@pytest.mark.asyncio
async def test_partial_delivery_still_counts_as_sent(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://hooks.example/generic",
            ops_alert_slack_webhook_url="https://hooks.example/slack",
        ),
    )
    _patch_http_client(monkeypatch, calls, fail_urls={"https://hooks.example/slack"})

    assert await alerts.send_ops_alert(event="ledger_chain_break_detected", payload={}) is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_all_deliveries_failed_returns_false(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(ops_alert_webhook_url="https://hooks.example/generic"),
    )
    _patch_http_client(monkeypatch, calls, fail_urls={"https://hooks.example/generic"})

    assert await alerts.send_ops_alert(event="ledger_chain_break_detected", payload={}) is False
