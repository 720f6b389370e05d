"""Configuration module."""

from sharedUtils.config.loader import (
    get_config,
    get_typed_config,
    reset_config_cache,
    get_logging_config,
    get_metrics_config,
    get_refresh_config,
    get_demo_feed_config,
    get_data_source_config,
    get_change_feed_config,
    get_email_config,
    get_server_config,
)
from sharedUtils.config.models import (
    AppConfig,
    LoggingConfig,
    MetricsConfig,
    RefreshConfig,
    DemoFeedConfig,
    DataSourceConfig,
    ChangeFeedConfig,
    EmailConfig,
    ServerConfig,
)

__all__ = [
    'get_config',
    'get_typed_config',
    'reset_config_cache',
    'get_logging_config',
    'get_metrics_config',
    'get_refresh_config',
    'get_demo_feed_config',
    'get_data_source_config',
    'get_change_feed_config',
    'get_email_config',
    'get_server_config',
    'AppConfig',
    'LoggingConfig',
    'MetricsConfig',
    'RefreshConfig',
    'DemoFeedConfig',
    'DataSourceConfig',
    'ChangeFeedConfig',
    'EmailConfig',
    'ServerConfig',
]
