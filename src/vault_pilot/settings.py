"""vault-pilot configuration: CLI flags, then environment and .env, then a TOML file."""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import DEFAULT_API_URL, DEFAULT_NETWORK
from .filters import ApyInterval, FilterSpec
from .networks import NetworkForm, normalize_network

load_dotenv()

SECRET_FIELDS = {"api_key"}
CONFIG_ENV_VAR = "VAULT_PILOT_CONFIG"
CONFIG_TABLE = "vault_pilot"
CONFIG_LOCATIONS = (
    Path("vault-pilot.toml"),
    Path.home() / ".config" / "vault-pilot" / "config.toml",
)


class MissingApiKeyError(ValueError):
    """Raised before any remote call when no API key is configured."""

    def __init__(self) -> None:
        super().__init__(
            "API key is required: set VAULT_PILOT_API_KEY (or VAULTS_FYI_API_KEY) "
            "or pass --api-key"
        )


class SecretInConfigFileError(ValueError):
    """An API key or other secret was written into the TOML config file."""

    def __init__(self, key: str, path: Path):
        self.key = key
        self.path = path
        super().__init__(
            f"'{key}' must not be stored in {path}; "
            "pass it through the environment or --api-key instead"
        )


def find_config_file() -> Path | None:
    """Config file named by VAULT_PILOT_CONFIG, else the first default location present."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    return next((path for path in CONFIG_LOCATIONS if path.exists()), None)


class TomlFileSource(PydanticBaseSettingsSource):
    """Lowest-precedence source reading a top-level or ``[vault_pilot]`` TOML table."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        with self.path.open("rb") as f:
            document = tomllib.load(f)
        table = document.get(CONFIG_TABLE, document)
        if not isinstance(table, dict):
            return {}
        leaked = SECRET_FIELDS.intersection(table)
        if leaked:
            raise SecretInConfigFileError(sorted(leaked)[0], self.path)
        return table


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


class FilterSettings(BaseModel):
    """Default filters, usually from the ``[filters]`` table of the config file."""

    allowed_networks: list[str] = Field(default_factory=list)
    disallowed_networks: list[str] = Field(default_factory=list)
    allowed_assets: list[str] = Field(default_factory=list)
    disallowed_assets: list[str] = Field(default_factory=list)
    allowed_protocols: list[str] = Field(default_factory=list)
    disallowed_protocols: list[str] = Field(default_factory=list)
    allowed_tags: list[str] = Field(default_factory=list)
    disallowed_tags: list[str] = Field(default_factory=list)
    min_tvl: Decimal | None = None
    max_tvl: Decimal | None = None
    only_transactional: bool = False
    only_app_featured: bool = False
    min_usd_asset_value_threshold: Decimal | None = None
    max_vaults_per_asset: int | None = None
    always_return_assets: list[str] = Field(default_factory=list)
    apy_interval: ApyInterval | None = None
    min_apy: Decimal | None = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def validate_filter_spec(self) -> "FilterSettings":
        """Surface conflicting or out-of-range filters at load time."""
        self.to_filter_spec()
        return self

    def to_filter_spec(self, **overrides: Any) -> FilterSpec:
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return FilterSpec(**values)


class PilotSettings(BaseSettings):
    """Process-wide configuration, built once per CLI invocation.

    Init kwargs (the CLI flags) win over ``VAULT_PILOT_*`` variables and
    ``.env``, which win over the TOML file. Read-only after construction.
    """

    # --- credentials / endpoint ---
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "api_key", "VAULT_PILOT_API_KEY", "VAULTS_FYI_API_KEY"
        ),
    )
    api_base_url: str = DEFAULT_API_URL
    request_timeout: float | None = Field(default=None, gt=0)

    # --- defaults for commands ---
    network: str = DEFAULT_NETWORK
    network_form: NetworkForm = NetworkForm.NAME
    user_address: str | None = None
    simulate: bool = True
    output_format: OutputFormat = OutputFormat.TABLE

    # --- caller-side policies ---
    retry_attempts: int = Field(default=0, ge=0)
    global_timeout_seconds: float | None = None

    # --- logging ---
    log_level: str = "INFO"

    # --- filters (usually from config file) ---
    filters: FilterSettings = Field(default_factory=FilterSettings)

    model_config = SettingsConfigDict(
        env_prefix="VAULT_PILOT_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr; treat empty strings as unset."""
        if v is None or isinstance(v, SecretStr):
            return v
        if isinstance(v, str) and not v.strip():
            return None
        return SecretStr(v)

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        return normalize_network(v)

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFileSource(settings_cls, find_config_file()),
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """JSON-ready settings for --show-config, secrets redacted."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = "***redacted***"
        return data

    @property
    def api_key_required(self) -> str:
        """Get the API key, raising MissingApiKeyError if not set."""
        if self.api_key is None or not self.api_key.get_secret_value():
            raise MissingApiKeyError()
        return self.api_key.get_secret_value()

    @property
    def user_address_required(self) -> str:
        """Get user_address, raising ValueError if not set."""
        if self.user_address is None:
            raise ValueError("user_address must be configured")
        return self.user_address

    def filter_spec(self, **overrides: Any) -> FilterSpec:
        """Build the effective FilterSpec, CLI overrides taking precedence."""
        return self.filters.to_filter_spec(**overrides)
