"""
Configuration loading.

Process-level settings (token, config path, log level) come from the
environment or a ``.env`` file; per-repository automerge policy comes from a
TOML file.
"""

import tomllib
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import Config


class Settings(BaseSettings):
    """Environment settings for the automerge bot."""

    github_token: SecretStr | None = Field(default=None, description="GitHub token")
    automerge_config: str = Field(
        default="automerge.toml", description="Path to the repository config file"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def token(self) -> str | None:
        if self.github_token is None:
            return None
        return self.github_token.get_secret_value().strip() or None


def load_config(path: str | Path) -> Config:
    """
    Read and validate the TOML repository configuration.

    Args:
        path: Path to the TOML file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Unable to read config file '{path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in '{path}': {e}") from e

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in '{path}': {e}") from e
