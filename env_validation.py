"""Environment variable validation and settings for the credential evaluator."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ISSUER = "Skllable"
DEFAULT_VERIFY_URL = "https://verify.skllable.com/credential"


class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    issuer_name: str
    verify_base_url: str
    credential_levels_path: Optional[Path]
    badge_catalog_path: Optional[Path]
    log_level: str


def validate_environment() -> None:
    """Validate configuration environment variables.

    Raises EnvironmentError if validation fails.
    """
    defaults = {
        "CREDENTIAL_ISSUER": DEFAULT_ISSUER,
        "CREDENTIAL_VERIFY_URL": DEFAULT_VERIFY_URL,
        "LOG_LEVEL": "INFO",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars = {
        "CREDENTIAL_LEVELS_PATH": "Path to credential level definitions",
        "BADGE_CATALOG_PATH": "Path to badge catalog definitions",
    }

    url = os.getenv("CREDENTIAL_VERIFY_URL", "")
    if not (url.startswith("http://") or url.startswith("https://")):
        raise EnvironmentError(f"Invalid URL format for CREDENTIAL_VERIFY_URL: {url}")

    level = os.getenv("LOG_LEVEL", "").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise EnvironmentError(f"Invalid LOG_LEVEL: {level}")

    for var, description in optional_vars.items():
        value = os.getenv(var)
        if not value:
            logger.debug("Optional environment variable not set: %s (%s)", var, description)
        elif not Path(value).exists():
            raise EnvironmentError(f"{var} points to a missing file: {value}")


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def get_env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def load_settings() -> Settings:
    """Validate the environment and return an immutable settings snapshot."""
    validate_environment()
    return Settings(
        issuer_name=os.environ["CREDENTIAL_ISSUER"],
        verify_base_url=os.environ["CREDENTIAL_VERIFY_URL"].rstrip("/"),
        credential_levels_path=get_env_path("CREDENTIAL_LEVELS_PATH"),
        badge_catalog_path=get_env_path("BADGE_CATALOG_PATH"),
        log_level=os.environ["LOG_LEVEL"].upper(),
    )
