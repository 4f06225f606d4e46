"""Shared fixtures for the DevProposals test suite."""

import pytest
import requests

from devproposals.config import Settings
from devproposals.text_extractor import TextExtractor


class StubCompletionClient:
    """Stands in for OpenRouterClient; records every call."""

    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.calls = []

    def complete(self, prompt, **kwargs):
        self.calls.append({"prompt": prompt, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture(autouse=True)
def _no_network(monkeypatch):
    """Fail loudly if a test reaches for the real network."""

    def blocked(*args, **kwargs):
        raise AssertionError(f"unexpected network call: {args}")

    monkeypatch.setattr("requests.get", blocked)


@pytest.fixture
def uploads_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def staging_dir(tmp_path):
    d = tmp_path / "staging"
    d.mkdir()
    return d


@pytest.fixture
def settings(uploads_dir, staging_dir):
    return Settings(api_key="test-key", uploads_dir=str(uploads_dir), temp_dir=str(staging_dir))


@pytest.fixture
def extractor(settings):
    return TextExtractor(settings)


@pytest.fixture
def stub_client():
    return StubCompletionClient()


@pytest.fixture
def fake_response():
    return FakeResponse
