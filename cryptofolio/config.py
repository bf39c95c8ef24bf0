"""Configuration loading for cryptofolio.

Settings come from a TOML file under ``~/.config/cryptofolio``, a ``.env``
file and the process environment, in increasing order of precedence.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

import toml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from cryptofolio.errors import ConfigurationError


CONFIG_DIR = Path.home() / ".config" / "cryptofolio"
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "portfolio.db"

# Environment variable -> (TOML section, TOML key, settings field)
ENV_KEYS = {
    "CMC_API_KEY": ("coinmarketcap", "api_key", "cmc_api_key"),
    "MORALIS_API_KEY": ("moralis", "api_key", "moralis_api_key"),
    "OPENAI_API_KEY": ("openai", "api_key", "openai_api_key"),
    "OPENAI_MODEL": ("openai", "model", "openai_model"),
    "CRYPTOFOLIO_DB_PATH": ("storage", "db_path", "db_path"),
    "CRYPTOFOLIO_LOG_LEVEL": ("logging", "level", "log_level"),
    "CRYPTOFOLIO_HTTP_TIMEOUT": ("http", "timeout", "http_timeout"),
}

# Placeholder values written by the sample config are treated as unset
PLACEHOLDERS = {"", "your-cmc-api-key", "your-moralis-api-key", "your-openai-api-key"}


class Settings(BaseModel):
    """Resolved runtime settings."""

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite database file")
    cmc_api_key: Optional[str] = Field(default=None, description="CoinMarketCap API key")
    moralis_api_key: Optional[str] = Field(default=None, description="Moralis API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: Optional[str] = Field(default=None, description="Model override")
    log_level: str = Field(default="WARNING", description="Root log level")
    http_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    model_config = {"frozen": True}

    def require(self, name: str) -> str:
        """Return a required setting or raise ConfigurationError.

        Args:
            name: Settings field name (e.g. "cmc_api_key").

        Returns:
            The configured value.

        Raises:
            ConfigurationError: If the value is missing.
        """
        value = getattr(self, name, None)
        if value is None or str(value) in PLACEHOLDERS:
            env_name = next(
                (env for env, (_, _, field) in ENV_KEYS.items() if field == name),
                name.upper(),
            )
            raise ConfigurationError(
                f"{env_name} is not configured. Set it in the environment, "
                f"a .env file, or {CONFIG_PATH}."
            )
        return str(value)


def _load_toml(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigurationError(f"Could not read {config_path}: {e}") from e


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> Settings:
    """Build Settings from the TOML file, .env and the environment.

    Args:
        config_path: TOML file to read. Defaults to CONFIG_PATH.
        env: Environment mapping. Defaults to os.environ.
        use_dotenv: Whether to load a .env file from the working directory.

    Returns:
        Resolved settings.
    """
    if use_dotenv:
        load_dotenv()
    if env is None:
        env = os.environ

    file_config = _load_toml(config_path or CONFIG_PATH)

    values: dict = {}
    for env_name, (section, key, field) in ENV_KEYS.items():
        value = env.get(env_name)
        if value is None:
            value = file_config.get(section, {}).get(key)
        if value is not None and value != "":
            values[field] = value

    if "db_path" in values:
        values["db_path"] = Path(values["db_path"]).expanduser()

    try:
        return Settings(**values)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
