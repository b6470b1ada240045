from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from app import create_app


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for requests.Session; `handler(url, params)` returns a FakeResponse."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        return self.handler(url, dict(params or {}))


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(content=None, error=None):
    completions = FakeCompletions(content=content, error=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def app(tmp_path):
    return create_app({
        "TESTING": True,
        "DATABASE_PATH": str(tmp_path / "test.db"),
        "TMDB_API_KEY": "tmdb-test",
        "OMDB_API_KEY": "omdb-test",
    })


@pytest.fixture
def client(app):
    return app.test_client()
