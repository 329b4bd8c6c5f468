"""Tests for the pstu command-line client."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from persona_studio.cli import main as cli

runner = CliRunner()


class FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = str(payload)

    def json(self):
        return self._payload


def test_resolve_host_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PSTU_HOST", raising=False)
    assert cli._resolve_host(None) == "http://127.0.0.1:5180"
    monkeypatch.setenv("PSTU_HOST", "http://studio.local/")
    assert cli._resolve_host(None) == "http://studio.local"
    assert cli._resolve_host("http://override:9000/") == "http://override:9000"


def test_status_prints_training_state(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_request(method, url, timeout, **kwargs):
        calls.append((method, url))
        return FakeResponse({"overall_progress": 40.0, "is_training": True, "steps": []})

    monkeypatch.setattr(cli.requests, "request", fake_request)
    result = runner.invoke(cli.app, ["status", "--persona", "abc", "--host", "http://h"])
    assert result.exit_code == 0
    assert calls == [("GET", "http://h/personas/abc/training")]
    assert '"overall_progress": 40.0' in result.stdout


def test_request_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli.requests,
        "request",
        lambda method, url, timeout, **kwargs: FakeResponse({"detail": "Persona not found"}, 404),
    )
    result = runner.invoke(cli.app, ["personas", "show", "abc", "--host", "http://h"])
    assert result.exit_code == 1
