"""Settings, read from ``SPEC_BRIDGE_*`` environment variables or a ``.env`` file."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from spec_bridge.parser.base import AuthenticationType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SPEC_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    apex_output_path: str = "force-app/main/default/classes"
    named_credential_path: str = "force-app/main/default/namedCredentials"
    external_service_path: str = "force-app/main/default/externalServiceRegistrations"
    generate_test_classes: bool = True
    enable_mock_services: bool = True
    default_auth_type: AuthenticationType = "None"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    store_path: str = ".spec_bridge/store.json"
    cli_timeout: int = Field(default=60, gt=0)  # seconds
    metadata_cache_ttl: int = Field(default=300, ge=0)  # seconds
    api_version: str = "59.0"


@lru_cache
def get_settings() -> Settings:
    return Settings()
