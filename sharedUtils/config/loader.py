"""Configuration loader with lazy singleton pattern."""

from typing import Dict, Any, Optional
import os
import tomllib
from pathlib import Path
from sharedUtils.logger.logger import get_logger
from sharedUtils.config.models import (
    AppConfig,
    MetricsConfig,
    RefreshConfig,
    DemoFeedConfig,
    DataSourceConfig,
    ChangeFeedConfig,
    EmailConfig,
    ServerConfig,
    LoggingConfig,
)

logger = get_logger(__name__)

CONFIG_PATH = Path(__file__).parent / "config.toml"

# Global config cache (singleton)
_CONFIG_CACHE: Optional[Dict[str, Any]] = None
_TYPED_CONFIG_CACHE: Optional[AppConfig] = None


def get_config() -> Dict[str, Any]:
    """
    Get configuration dictionary (lazy-loaded singleton).

    Loads config from sharedUtils/config/config.toml on first access
    and caches it for subsequent calls.

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE is None:
        logger.debug("Loading config from: %s", CONFIG_PATH)

        if not CONFIG_PATH.exists():
            logger.error("Config file not found: %s", CONFIG_PATH)
            raise FileNotFoundError(f"Configuration file not found: {CONFIG_PATH}")

        with open(CONFIG_PATH, "rb") as f:
            _CONFIG_CACHE = tomllib.load(f)
            logger.debug("Configuration loaded successfully")

    return _CONFIG_CACHE


def _apply_env_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay secrets and deployment settings taken from the environment."""
    merged = {section: dict(values) if isinstance(values, dict) else values
              for section, values in config_dict.items()}

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        merged.setdefault("data_source", {})["database_url"] = database_url

    email = merged.setdefault("email", {})
    if os.environ.get("RESEND_API_KEY"):
        email["api_key"] = os.environ["RESEND_API_KEY"]
    if os.environ.get("MAIL_FROM"):
        email["mail_from"] = os.environ["MAIL_FROM"]
    if os.environ.get("MAIL_TO"):
        email["mail_to"] = [s.strip() for s in os.environ["MAIL_TO"].split(",") if s.strip()]

    return merged


def get_typed_config() -> AppConfig:
    """
    Get typed configuration (lazy-loaded singleton with validation).

    Loads config from sharedUtils/config/config.toml on first access,
    applies environment overrides, validates it using Pydantic models,
    and caches it for subsequent calls.

    Returns:
        Validated AppConfig instance with type-safe access

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config doesn't match expected schema
    """
    global _TYPED_CONFIG_CACHE

    if _TYPED_CONFIG_CACHE is None:
        config_dict = _apply_env_overrides(get_config())
        _TYPED_CONFIG_CACHE = AppConfig(**config_dict)
        logger.debug("Configuration validated with Pydantic models")

    return _TYPED_CONFIG_CACHE


def reset_config_cache() -> None:
    """Drop cached configuration so the next access reloads it."""
    global _CONFIG_CACHE, _TYPED_CONFIG_CACHE
    _CONFIG_CACHE = None
    _TYPED_CONFIG_CACHE = None


def get_logging_config() -> LoggingConfig:
    """Get typed logging configuration section."""
    return get_typed_config().logging


def get_metrics_config() -> MetricsConfig:
    """Get typed metrics configuration section."""
    return get_typed_config().metrics


def get_refresh_config() -> RefreshConfig:
    """Get typed refresh timer configuration section."""
    return get_typed_config().refresh


def get_demo_feed_config() -> DemoFeedConfig:
    """Get typed simulated feed configuration section."""
    return get_typed_config().demo_feed


def get_data_source_config() -> DataSourceConfig:
    """Get typed data source configuration section."""
    return get_typed_config().data_source


def get_change_feed_config() -> ChangeFeedConfig:
    """Get typed change feed configuration section."""
    return get_typed_config().change_feed


def get_email_config() -> EmailConfig:
    """Get typed email configuration section."""
    return get_typed_config().email


def get_server_config() -> ServerConfig:
    """Get typed server configuration section."""
    return get_typed_config().server
