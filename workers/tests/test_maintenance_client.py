import asyncio

import httpx
import pytest

from skillboard_worker.services.maintenance_client import MaintenanceClient


def _patch_transport(monkeypatch: pytest.MonkeyPatch, handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []
    real_client = httpx.AsyncClient

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(_record), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", _client)
    return seen


def test_reap_posts_with_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"deactivated": 4}))
    client = MaintenanceClient("http://api.local/", "secret-key", timeout_seconds=2.0)

    assert asyncio.run(client.reap_expired_jobs()) == 4
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://api.local/maintenance/reap-expired"
    assert seen[0].headers["X-API-Key"] == "secret-key"


def test_reap_raises_on_auth_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_transport(monkeypatch, lambda request: httpx.Response(401, json={"detail": "invalid"}))
    client = MaintenanceClient("http://api.local", "wrong")

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.reap_expired_jobs())
