"""Configuration management for gitscout."""

import logging
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Standard logging here to avoid a circular import with utils.logger;
# setup_logging() reconfigures the root logger once settings are loaded
logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_API_URL = "https://api.vercel.com"
SUPPORTED_RUNTIMES = ("node22", "python3.13")

# Sensitive environment variable names, shared with the CLI for masking
SENSITIVE_ENV_VAR_NAMES: frozenset = frozenset(
    {
        "VERCEL_TOKEN",
        "VERCEL_OIDC_TOKEN",
    }
)

# Elevated-tier credential triple: all three or none
CREDENTIAL_ENV_VAR_NAMES = ("VERCEL_TEAM_ID", "VERCEL_PROJECT_ID", "VERCEL_TOKEN")

_SENSITIVE_FIELD_NAMES: frozenset = frozenset(
    {name.lower() for name in SENSITIVE_ENV_VAR_NAMES}
)


class CoreSettings(BaseSettings):
    """Process-wide settings for sandbox provisioning and logging."""

    model_config = SettingsConfigDict(extra="ignore")

    _SENSITIVE_FIELDS: frozenset = _SENSITIVE_FIELD_NAMES

    def __repr__(self) -> str:
        """Return a representation with sensitive fields masked."""
        field_strs = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name, None)
            if field_name in self._SENSITIVE_FIELDS:
                masked = f"<{len(str(value))} chars>" if value else "None"
                field_strs.append(f"{field_name}={masked!r}")
            else:
                field_strs.append(f"{field_name}={value!r}")
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __str__(self) -> str:
        return self.__repr__()

    # Elevated-tier sandbox credentials
    vercel_token: Optional[str] = Field(None, validation_alias="VERCEL_TOKEN")
    vercel_team_id: Optional[str] = Field(None, validation_alias="VERCEL_TEAM_ID")
    vercel_project_id: Optional[str] = Field(None, validation_alias="VERCEL_PROJECT_ID")

    # Default-tier token injected by the hosting platform
    vercel_oidc_token: Optional[str] = Field(None, validation_alias="VERCEL_OIDC_TOKEN")

    # Sandbox provisioning
    sandbox_api_url: str = Field(
        DEFAULT_SANDBOX_API_URL, validation_alias="SANDBOX_API_URL"
    )
    sandbox_vcpus: int = Field(
        4,
        validation_alias="SANDBOX_VCPUS",
        ge=1,
        le=8,
        description="vCPUs allocated to each sandbox (1-8)",
    )
    sandbox_timeout_minutes: int = Field(
        30,
        validation_alias="SANDBOX_TIMEOUT_MINUTES",
        ge=1,
        le=300,
        description="Idle/session timeout for each sandbox in minutes (1-300)",
    )
    sandbox_runtime: str = Field("node22", validation_alias="SANDBOX_RUNTIME")
    sandbox_request_timeout: float = Field(
        60.0,
        validation_alias="SANDBOX_REQUEST_TIMEOUT",
        gt=0,
        description="Per-request HTTP timeout for the sandbox API in seconds",
    )

    # Logging configuration
    log_level: str = Field(
        "INFO",
        validation_alias="LOG_LEVEL",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_logs: bool = Field(False, validation_alias="JSON_LOGS")

    # SSL/TLS configuration
    ssl_verify: bool = Field(True, validation_alias="SSL_VERIFY")

    @field_validator("json_logs", "ssl_verify", mode="before")
    @classmethod
    def parse_bool_from_env(cls, v: Any) -> bool:
        """Handle empty strings and various boolean representations from env vars."""
        if v is None or v == "":
            return False
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower().strip() in ("true", "1", "yes")
        return bool(v)

    @field_validator(
        "vercel_token",
        "vercel_team_id",
        "vercel_project_id",
        "vercel_oidc_token",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat blank credential values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("sandbox_runtime", mode="before")
    @classmethod
    def validate_runtime(cls, value: Any) -> str:
        """Normalize the runtime tag, falling back to node22 when unknown."""
        if value is None:
            return "node22"
        normalized = str(value).strip().lower()
        if normalized not in SUPPORTED_RUNTIMES:
            logger.warning(
                f"Invalid SANDBOX_RUNTIME '{value}'. Falling back to 'node22'. "
                f"Allowed values: {', '.join(SUPPORTED_RUNTIMES)}."
            )
            return "node22"
        return normalized

    @field_validator("sandbox_api_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


# Alias used throughout the code base
Settings = CoreSettings


def load_settings() -> Settings:
    """Load settings from environment variables."""
    return CoreSettings()
