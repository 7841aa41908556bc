"""Tests for settings loading."""
from pathlib import Path

import pytest

from rajai_builder.config import MISSING_CREDENTIAL_MESSAGE, Settings, load_settings
from rajai_builder.errors import ConfigurationError
from rajai_builder.llm import get_llm


def test_credential_lookup_order():
    settings = load_settings({"GOOGLE_API_KEY": "google", "API_KEY": "plain"})
    assert settings.api_key == "google"
    assert load_settings({"GEMINI_API_KEY": "gemini", "GOOGLE_API_KEY": "google"}).api_key == "gemini"


def test_missing_credential_is_reported_not_raised():
    settings = load_settings({})
    assert settings.api_key is None
    assert settings.configuration_error == MISSING_CREDENTIAL_MESSAGE
    with pytest.raises(ConfigurationError):
        settings.require_credential()


def test_overrides():
    settings = load_settings({
        "API_KEY": "k",
        "RAJAI_MODEL": "gemini-2.5-pro",
        "RAJAI_TEMPERATURE": "0.2",
        "RAJAI_STORE_DIR": "/tmp/rajai-store",
        "PORT": "9000",
    })
    assert settings.model == "gemini-2.5-pro"
    assert settings.temperature == 0.2
    assert settings.store_dir == Path("/tmp/rajai-store")
    assert settings.port == 9000
    assert settings.configuration_error is None


def test_get_llm_requires_credential():
    with pytest.raises(ConfigurationError):
        get_llm(Settings(api_key=None))
