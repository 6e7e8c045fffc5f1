"""
Tests for the settings API endpoints.
"""

from fastapi.testclient import TestClient

from assistant.services.app_settings import AppSettingsService


def test_get_settings_default(client: TestClient) -> None:
    """Test getting default settings."""
    response = client.get("/api/v1/settings/assistant")
    assert response.status_code == 200
    data = response.json()
    assert data["llm_api_key"] is None
    assert data["assistant_enabled"] is True
    assert data["assistant_visibility"] == "public"


def test_update_settings_masks_key(client: TestClient, settings_service: AppSettingsService) -> None:
    response = client.put(
        "/api/v1/settings/assistant",
        json={"llm_provider": "anthropic", "llm_api_key": "sk-ant-1234567890"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["llm_provider"] == "anthropic"
    assert data["llm_api_key"] == "sk-a" + "•" * 8
    assert data["llm_configured"] is True
    # Stored unmasked
    assert settings_service.get().llm_api_key == "sk-ant-1234567890"


def test_update_partial_keeps_other_fields(client: TestClient, settings_service: AppSettingsService) -> None:
    settings_service.update(llm_provider="openai", llm_model="gpt-4o")
    client.put("/api/v1/settings/assistant", json={"assistant_tools_enabled": False})
    settings = settings_service.get()
    assert settings.llm_model == "gpt-4o"
    assert settings.assistant_tools_enabled is False


def test_update_access_policy(client: TestClient, settings_service: AppSettingsService) -> None:
    response = client.put(
        "/api/v1/settings/assistant",
        json={"assistant_visibility": "group_restricted", "assistant_allowed_groups": ["group-1"]},
    )
    assert response.status_code == 200
    policy = settings_service.get_access_policy()
    assert policy.visibility == "group_restricted"
    assert policy.allowed_groups == ["group-1"]


def test_update_rejects_unknown_provider(client: TestClient) -> None:
    response = client.put("/api/v1/settings/assistant", json={"llm_provider": "ollama"})
    assert response.status_code == 422


def test_clear_api_key(client: TestClient, settings_service: AppSettingsService) -> None:
    settings_service.update(llm_api_key="sk-1234567890")
    response = client.delete("/api/v1/settings/assistant/api-key")
    assert response.status_code == 200
    assert settings_service.get().llm_api_key is None
