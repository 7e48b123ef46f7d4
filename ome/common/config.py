"""
Engine Configuration

Settings are resolved from (highest priority first):
- explicit overrides (CLI flags)
- environment variables prefixed with OME_
- the YAML configuration file
- defaults below
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

# Default configuration path
DEFAULT_CONFIG_PATH = "ome.yaml"

LOG_FORMATS = ("json", "text")
ENVIRONMENTS = ("development", "production", "test")

# Origins allowed when nothing is configured
DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


class Settings(BaseSettings):
    """
    Runtime settings for the matching engine.

    Environment variables:
    - OME_HOST, OME_PORT
    - OME_ENVIRONMENT=development|production|test
    - OME_EXECUTIONER_URL=http://executioner:3000/submit
    - OME_CHECK_ORDERS=true
    - OME_RPC_TIMEOUT_S=10
    - OME_ALLOWED_ORIGINS=https://a.example,https://b.example
    - OME_LOG_LEVEL, OME_LOG_FORMAT=json|text
    """

    model_config = SettingsConfigDict(env_prefix="OME_", extra="forbid")

    host: str = "127.0.0.1"
    port: int = 8989
    environment: str = "development"

    # Executioner (order validation + settlement); None disables RPC
    executioner_url: Optional[str] = None
    check_orders: bool = True
    rpc_timeout_s: float = 10.0

    allowed_origins: str = ""

    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("port must be between 1 and 65535")
        return value

    @field_validator("environment")
    @classmethod
    def _valid_environment(cls, value: str) -> str:
        value = value.lower()
        if value not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {ENVIRONMENTS}")
        return value

    @field_validator("log_format")
    @classmethod
    def _valid_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        return value

    @field_validator("rpc_timeout_s")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("rpc_timeout_s must be positive")
        return value

    @field_validator("executioner_url")
    @classmethod
    def _strip_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        if not value:
            return None
        if not value.startswith(("http://", "https://")):
            raise ValueError("executioner_url must be an http(s) URL")
        return value

    @property
    def origins(self) -> list[str]:
        """CORS origins; development defaults when none configured"""
        origins = [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]
        if self.environment == "development" or not origins:
            origins.extend(o for o in DEV_ORIGINS if o not in origins)
        return origins

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


def _load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load configuration values from a YAML file"""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")

    # Allow an optional top-level "ome:" section
    if isinstance(data.get("ome"), dict):
        data = data["ome"]

    return data


def load_settings(
    config_path: str | Path | None = None,
    **overrides: Any,
) -> Settings:
    """
    Build Settings from file, environment and overrides.

    Args:
        config_path: Optional YAML file
        overrides: Explicit values (None values are ignored)

    Returns:
        Validated Settings

    Raises:
        ConfigError: file missing/unparseable or values invalid
    """
    file_values = _load_yaml(config_path) if config_path else {}
    explicit = {k: v for k, v in overrides.items() if v is not None}

    try:
        from_env = Settings()
        env_values = {name: getattr(from_env, name) for name in from_env.model_fields_set}
        return Settings(**{**file_values, **env_values, **explicit})
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(errors) from e
