"""Shared fixtures."""

import pytest

from streamchat.main import app
from streamchat.utils import tokens


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    """Use the character-based token estimate so tests never download encodings."""
    monkeypatch.setattr(tokens, "get_tokenizer", lambda: None)


@pytest.fixture
def override_dependency():
    """Override FastAPI dependencies for one test."""

    def _override(dependency, value):
        app.dependency_overrides[dependency] = lambda: value

    yield _override
    app.dependency_overrides.clear()
