import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from the working directory early so env vars are available for YAML interpolation
load_dotenv(Path.cwd() / ".env")

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FORMWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Message recorded when a submitted form token is missing or wrong
    token_error: str = "Invalid token"

    # Session key the form token is stored under
    token_session_key: str = "form_token"

    # Method used when a form does not name one
    default_method: str = "post"

    # Cookie whose value seeds form tokens in the Litestar adapter
    session_cookie: str = "session"


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment, .env and the forms section of app.yaml."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    forms_config = app_config.get("forms") or {}
    if not forms_config:
        return base_settings

    updates = {k: v for k, v in forms_config.items() if k in Settings.model_fields}
    return base_settings.model_copy(update=updates)
