"""Configuration management for Graph Session."""

import json
from pathlib import Path
from typing import Annotated, Any, Literal, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from .utils.exceptions import ConfigurationError

load_dotenv()

GRAPH_RESOURCE = "https://graph.microsoft.com"

# OIDC scopes MSAL adds on its own and rejects when requested explicitly
RESERVED_SCOPES = {"openid", "profile", "offline_access"}


class AuthSettings(BaseSettings):
    """Identity provider settings."""

    client_id: Optional[str] = Field(None, validation_alias="GRAPH_CLIENT_ID")
    tenant_id: str = Field(default="common", validation_alias="GRAPH_TENANT_ID")
    authority: Optional[str] = Field(None, validation_alias="GRAPH_AUTHORITY")
    redirect_uri: str = Field(
        default="http://localhost", validation_alias="GRAPH_REDIRECT_URI"
    )
    scopes: Annotated[list[str], NoDecode] = Field(
        default=["User.Read"], validation_alias="GRAPH_SCOPES"
    )
    interactive_mode: Literal["browser", "device_code"] = Field(
        default="browser", validation_alias="GRAPH_INTERACTIVE_MODE"
    )
    graph_base_url: str = Field(
        default=f"{GRAPH_RESOURCE}/v1.0", validation_alias="GRAPH_BASE_URL"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",  # Treat empty string as None
        populate_by_name=True,
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, value: Any) -> Any:
        """Accept a JSON list or a space/comma separated string."""
        if not isinstance(value, str):
            return value
        if value.strip().startswith("["):
            return json.loads(value)
        return [scope for scope in value.replace(",", " ").split() if scope]

    @property
    def resolved_authority(self) -> str:
        return self.authority or f"https://login.microsoftonline.com/{self.tenant_id}"

    @property
    def graph_scopes(self) -> list[str]:
        """Scopes qualified with the Graph resource, reserved ones left out."""
        resolved = []
        for scope in self.scopes:
            if scope in RESERVED_SCOPES:
                continue
            if "://" in scope:
                resolved.append(scope)
            else:
                resolved.append(f"{GRAPH_RESOURCE}/{scope}")
        return resolved

    @property
    def redirect_port(self) -> Optional[int]:
        """Loopback port for the browser flow, if the redirect URI pins one."""
        return urlparse(self.redirect_uri).port


class StorageConfig(BaseSettings):
    """Token cache persistence settings."""

    cache_file_name: str = Field(
        default="graph_session_cache.bin", validation_alias="TOKEN_CACHE_FILE_NAME"
    )
    cache_directory: Path = Field(
        default=Path(".token_cache"), validation_alias="TOKEN_CACHE_DIRECTORY"
    )
    encrypted: bool = Field(default=True, validation_alias="TOKEN_CACHE_ENCRYPTED")
    allow_plaintext_fallback: bool = Field(
        default=False, validation_alias="TOKEN_CACHE_PLAINTEXT_FALLBACK"
    )

    # Linux (libsecret)
    linux_keyring_schema: str = Field(
        default="com.graphsession.tokencache", validation_alias="LINUX_KEYRING_SCHEMA"
    )
    linux_keyring_collection: Optional[str] = Field(
        default=None, validation_alias="LINUX_KEYRING_COLLECTION"
    )
    linux_keyring_label: str = Field(
        default="MSAL token cache for Graph Session",
        validation_alias="LINUX_KEYRING_LABEL",
    )
    linux_keyring_attributes: dict[str, str] = Field(
        default={"Version": "1", "ProductGroup": "GraphSession"},
        validation_alias="LINUX_KEYRING_ATTRIBUTES",
    )

    # macOS (keychain)
    keychain_service_name: str = Field(
        default="com.graphsession.tokencache", validation_alias="KEYCHAIN_SERVICE_NAME"
    )
    keychain_account_name: str = Field(
        default="MSALCache", validation_alias="KEYCHAIN_ACCOUNT_NAME"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("linux_keyring_attributes")
    @classmethod
    def at_most_two_attributes(cls, value: dict[str, str]) -> dict[str, str]:
        if len(value) > 2:
            raise ValueError("at most two keyring attributes are supported")
        return value

    @property
    def cache_path(self) -> Path:
        return self.cache_directory / self.cache_file_name


class AppConfig(BaseSettings):
    """Application configuration."""

    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from the environment, then overlay a YAML file.

    The YAML file may contain ``auth``, ``storage`` and ``logging`` sections
    whose keys are the field names of the matching settings classes.

    Args:
        config_path: Optional YAML file path

    Returns:
        Loaded AppConfig

    Raises:
        ConfigurationError: If the file cannot be parsed or values are invalid
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    try:
        auth = AuthSettings(**data.get("auth", {}))
        storage = StorageConfig(**data.get("storage", {}))
        app = AppConfig(auth=auth, storage=storage)
        logging_data = data.get("logging", {})
        if logging_data:
            app = app.model_copy(
                update={
                    "log_level": logging_data.get("level", app.log_level),
                    "log_file": (
                        Path(logging_data["file"])
                        if logging_data.get("file")
                        else app.log_file
                    ),
                }
            )
        return app
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
