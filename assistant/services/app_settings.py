"""Admin-editable assistant settings stored in a JSON file."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from assistant.config import settings as env_settings
from assistant.services.access import AssistantAccessPolicy, AssistantVisibility
from assistant.services.llm.models import ProviderConfig

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("google", "anthropic", "openai")
DEFAULT_PROVIDER = "google"


class AppSettings(BaseModel):
    """User-configurable app settings."""

    # LLM provider
    llm_provider: str | None = None  # "google", "anthropic" or "openai"
    llm_api_key: str | None = None
    llm_model: str | None = None  # None -> vendor default
    llm_base_url: str | None = None
    assistant_tools_enabled: bool = True

    # Who may use the assistant
    assistant_enabled: bool = True
    assistant_visibility: AssistantVisibility = "public"
    assistant_allowed_users: list[str] = []
    assistant_allowed_groups: list[str] = []


class AppSettingsService:
    """Service for managing user-configurable app settings."""

    def __init__(self, settings_path: Path | None = None):
        self.settings_path = settings_path or Path("data/settings.json")
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self._settings: AppSettings | None = None

    def _load(self) -> AppSettings:
        if self.settings_path.exists():
            try:
                with open(self.settings_path) as f:
                    data = json.load(f)
                return AppSettings(**data)
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable settings file {self.settings_path}: {e}")
        return AppSettings()

    def _save(self, settings: AppSettings) -> None:
        with open(self.settings_path, "w") as f:
            json.dump(settings.model_dump(), f, indent=2)

    def get(self) -> AppSettings:
        """Get current settings."""
        if self._settings is None:
            self._settings = self._load()
        return self._settings

    def update(self, **kwargs: Any) -> AppSettings:
        """Update settings with new values.

        None leaves a field unchanged; an explicit empty string clears it.
        """
        current = self.get()
        updated_data = current.model_dump()

        for key, value in kwargs.items():
            if hasattr(current, key) and value is not None:
                updated_data[key] = value if value != "" else None

        provider = updated_data.get("llm_provider")
        if provider is not None and provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported provider '{provider}'. Use one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        self._settings = AppSettings(**updated_data)
        self._save(self._settings)
        logger.info(f"Assistant settings updated: {sorted(k for k, v in kwargs.items() if v is not None)}")
        return self._settings

    def get_masked(self) -> dict[str, Any]:
        """Get settings with the API key masked for display."""
        data = self.get().model_dump()
        key = data.get("llm_api_key")
        if key:
            val = str(key)
            if len(val) > 8:
                data["llm_api_key"] = val[:4] + "•" * 8
            else:
                data["llm_api_key"] = "•" * len(val)
        return data

    def get_effective(self) -> AppSettings:
        """Settings file values, falling back to environment for unset LLM fields."""
        current = self.get()
        return current.model_copy(update={
            "llm_provider": current.llm_provider or env_settings.llm_provider or DEFAULT_PROVIDER,
            "llm_api_key": current.llm_api_key or env_settings.llm_api_key,
            "llm_model": current.llm_model or env_settings.llm_model,
        })

    def get_provider_config(self) -> ProviderConfig | None:
        """Provider configuration, or None if no API key is configured."""
        effective = self.get_effective()
        if not effective.llm_api_key:
            return None
        if effective.llm_provider not in SUPPORTED_PROVIDERS:
            logger.error(f"Configured LLM provider '{effective.llm_provider}' is not supported")
            return None
        return ProviderConfig(
            provider=effective.llm_provider,
            api_key=effective.llm_api_key,
            model=effective.llm_model,
            base_url=effective.llm_base_url,
            enable_tools=effective.assistant_tools_enabled,
        )

    def get_access_policy(self) -> AssistantAccessPolicy:
        current = self.get()
        return AssistantAccessPolicy(
            enabled=current.assistant_enabled,
            visibility=current.assistant_visibility,
            allowed_users=list(current.assistant_allowed_users),
            allowed_groups=list(current.assistant_allowed_groups),
        )


# Singleton instance
_app_settings_service: AppSettingsService | None = None


def get_app_settings_service() -> AppSettingsService:
    """Get or create the app settings service singleton."""
    global _app_settings_service
    if _app_settings_service is None:
        _app_settings_service = AppSettingsService(env_settings.settings_path)
    return _app_settings_service
