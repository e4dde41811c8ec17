"""Shared fixtures for Music Blend tests."""

import pytest

from helpers import ScriptedModel


@pytest.fixture
def failing_model() -> ScriptedModel:
    """A model whose every call raises."""
    return ScriptedModel(RuntimeError("model unavailable"))


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point config, data and cwd at a temp dir and drop any real API key."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    # Set before deleting so teardown also drops keys loaded from .env files
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.delenv("OPENAI_API_KEY")
    monkeypatch.delenv("MUSIC_BLEND_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
