"""
Configuration for the Metal Cloud CLI.

Settings are read from a YAML file and from environment variables with the
``METALCLOUD_`` prefix. Environment variables take precedence over the file.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from metalcloud_cli.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".metalcloud" / "config.yaml"


class Config(BaseSettings):
    """Connection and behaviour settings.

    Load order precedence (highest to lowest):
    - Environment variables with ``METALCLOUD_`` prefix
    - Values from the YAML configuration file
    - Defaults in this class
    """

    endpoint: Optional[str] = Field(
        default=None, description="Base URL of the Metal Cloud API"
    )
    api_key: Optional[str] = Field(
        default=None, description="API key in the <user_id>:<secret> form"
    )
    user_email: Optional[str] = Field(
        default=None, description="Owner of the API key"
    )
    datacenter: Optional[str] = Field(default=None, description="Default datacenter")
    timeout_seconds: int = Field(default=30, description="HTTP request timeout")
    insecure_skip_verify: bool = Field(
        default=False, description="Skip TLS certificate verification"
    )
    logging_enabled: bool = Field(
        default=False, description="Log API requests and responses"
    )
    admin: bool = Field(default=False, description="Expose admin-only behaviour")

    model_config = {
        "env_prefix": "METALCLOUD_",
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # env first so it overrides values passed in from the YAML file
        return env_settings, init_settings

    @classmethod
    def from_file(cls, file_path: str) -> "Config":
        """
        Load configuration from a YAML file.

        A missing file is not an error: defaults and environment variables
        are used instead.

        Args:
            file_path: Path to the YAML file

        Returns:
            Loaded configuration
        """
        path = Path(file_path)
        data: Dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Configuration file {path} must contain a mapping"
                )
        return cls(**data)

    @property
    def verify_ssl(self) -> bool:
        return not self.insecure_skip_verify

    @property
    def user_id(self) -> str:
        """User ID portion of the API key."""
        return (self.api_key or "").split(":", 1)[0]

    @property
    def api_secret(self) -> str:
        """Secret portion of the API key."""
        parts = (self.api_key or "").split(":", 1)
        return parts[1] if len(parts) == 2 else ""

    def validate_for_api(self) -> None:
        """Ensure the settings needed to reach the API are present."""
        if not self.endpoint:
            raise ConfigurationError(
                "METALCLOUD_ENDPOINT must be set (or 'endpoint' in the config file)"
            )
        if not self.api_key:
            raise ConfigurationError(
                "METALCLOUD_API_KEY must be set (or 'api_key' in the config file)"
            )
        if ":" not in self.api_key or not self.user_id or not self.api_secret:
            raise ConfigurationError(
                "API key must have the format <user_id>:<secret>"
            )

    def masked(self) -> Dict[str, Any]:
        """Settings as a dict with the API secret hidden."""
        data = self.model_dump()
        if self.api_key:
            data["api_key"] = f"{self.user_id}:****"
        return data
