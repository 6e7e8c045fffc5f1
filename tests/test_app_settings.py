"""Tests for the JSON-backed app settings service."""

import json
from unittest.mock import patch

import pytest

from assistant.services.app_settings import AppSettingsService


def test_defaults(settings_service: AppSettingsService) -> None:
    settings = settings_service.get()
    assert settings.llm_api_key is None
    assert settings.assistant_tools_enabled is True
    assert settings.assistant_visibility == "public"


def test_update_persists(settings_service: AppSettingsService) -> None:
    settings_service.update(llm_provider="openai", llm_api_key="sk-1234567890")

    reloaded = AppSettingsService(settings_service.settings_path)
    assert reloaded.get().llm_provider == "openai"
    assert reloaded.get().llm_api_key == "sk-1234567890"


def test_update_none_keeps_and_empty_clears(settings_service: AppSettingsService) -> None:
    settings_service.update(llm_api_key="sk-1234567890", llm_model="gpt-4o")
    settings_service.update(llm_api_key=None, llm_model="")
    assert settings_service.get().llm_api_key == "sk-1234567890"
    assert settings_service.get().llm_model is None


def test_update_rejects_unknown_provider(settings_service: AppSettingsService) -> None:
    with pytest.raises(ValueError):
        settings_service.update(llm_provider="ollama")


def test_masked_key(settings_service: AppSettingsService) -> None:
    settings_service.update(llm_api_key="sk-1234567890")
    assert settings_service.get_masked()["llm_api_key"] == "sk-1" + "•" * 8

    settings_service.update(llm_api_key="short")
    assert settings_service.get_masked()["llm_api_key"] == "•" * 5


def test_corrupt_file_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert AppSettingsService(path).get().llm_provider is None


def test_provider_config(settings_service: AppSettingsService) -> None:
    with patch("assistant.services.app_settings.env_settings") as env:
        env.llm_provider = None
        env.llm_api_key = None
        env.llm_model = None
        assert settings_service.get_provider_config() is None

        settings_service.update(llm_provider="anthropic", llm_api_key="sk-ant", assistant_tools_enabled=False)
        config = settings_service.get_provider_config()

    assert config.provider == "anthropic"
    assert config.api_key == "sk-ant"
    assert config.enable_tools is False
    assert config.resolved_model == "claude-3-haiku-20240307"


def test_effective_falls_back_to_environment(settings_service: AppSettingsService) -> None:
    with patch("assistant.services.app_settings.env_settings") as env:
        env.llm_provider = "openai"
        env.llm_api_key = "sk-env"
        env.llm_model = "gpt-4o"
        config = settings_service.get_provider_config()

    assert config.provider == "openai"
    assert config.api_key == "sk-env"
    assert config.model == "gpt-4o"


def test_access_policy(settings_service: AppSettingsService) -> None:
    settings_service.update(assistant_visibility="group_restricted", assistant_allowed_groups=["g1"])
    policy = settings_service.get_access_policy()
    assert policy.visibility == "group_restricted"
    assert policy.allowed_groups == ["g1"]
    assert json.loads(settings_service.settings_path.read_text())["assistant_allowed_groups"] == ["g1"]
