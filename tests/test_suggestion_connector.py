from __future__ import annotations

import pytest
import requests

from app.config import get_settings
from app.connectors import suggestions


class _FakeResponse:
    def __init__(self, payload, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture
def provider_url(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUGGESTION_PROVIDER_URL", "http://provider.local/suggest")
    monkeypatch.setenv("SUGGESTION_PROVIDER_TIMEOUT_SECONDS", "3")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _fetch():
    return suggestions.fetch_template_suggestions(
        risk_id="RISK-1",
        risk_title="Payment fraud",
        response_type="reduce_likelihood",
    )


def test_disabled_provider_returns_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUGGESTION_PROVIDER_URL", "")
    get_settings.cache_clear()

    def _boom(*args, **kwargs):
        raise AssertionError("provider must not be called")

    monkeypatch.setattr(suggestions.requests, "post", _boom)
    assert _fetch() == []
    get_settings.cache_clear()


def test_provider_ranking_is_respected(provider_url, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def _post(url, json=None, timeout=None):
        seen.update(url=url, body=json, timeout=timeout)
        return _FakeResponse(
            {
                "suggestions": [
                    {"template_id": "PCI-05", "priority": 2},
                    {"template_id": "PCI-03", "priority": 1, "rationale": "Access is the driver"},
                    {"rationale": "no id"},
                ]
            }
        )

    monkeypatch.setattr(suggestions.requests, "post", _post)
    out = _fetch()
    assert [item["template_id"] for item in out] == ["PCI-03", "PCI-05"]
    assert seen["timeout"] == 3
    assert seen["body"]["response_type"] == "reduce_likelihood"


def test_provider_failures_fall_back_to_empty(provider_url, monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    def _timeout(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(suggestions.requests, "post", _timeout)
    assert _fetch() == []
    assert "Suggestion provider failed" in caplog.text

    monkeypatch.setattr(suggestions.requests, "post", lambda *a, **k: _FakeResponse({}, status=500))
    assert _fetch() == []

    monkeypatch.setattr(suggestions.requests, "post", lambda *a, **k: _FakeResponse("not a list"))
    assert _fetch() == []
