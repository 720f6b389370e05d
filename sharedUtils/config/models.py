"""Type-safe Pydantic models for configuration."""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class LoggingConfig(BaseModel):
    """Configuration for logging settings."""
    level: str = Field(default="INFO", description="Logging level")
    file: str = Field(description="Log file path")
    format: str = Field(description="Log message format")
    console_export: bool = Field(default=True, description="Enable console output")
    json_indent: int = Field(default=2, description="JSON output indentation")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class MetricsConfig(BaseModel):
    """Configuration for metrics aggregation windows."""
    session_end_hour: int = Field(default=17, description="Daily cutoff hour for the rate session window")
    week_days: int = Field(default=7, description="Days counted as 'this week'")
    month_days: int = Field(default=30, description="Days counted as 'this month'")
    top_items_limit: int = Field(default=5, description="Number of items in the most-detected list")

    @field_validator("session_end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("session_end_hour must be between 0 and 23")
        return v

    @field_validator("week_days", "month_days", "top_items_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v


class RefreshConfig(BaseModel):
    """Configuration for the randomized refresh timer (demo variant)."""
    timer_min_ms: int = Field(default=2000, description="Lower bound of the timer interval")
    timer_max_ms: int = Field(default=4000, description="Upper bound of the timer interval")

    @model_validator(mode="after")
    def validate_range(self) -> "RefreshConfig":
        if self.timer_min_ms <= 0:
            raise ValueError("timer_min_ms must be positive")
        if self.timer_max_ms < self.timer_min_ms:
            raise ValueError("timer_max_ms cannot be lower than timer_min_ms")
        return self


class DemoFeedConfig(BaseModel):
    """Starting totals for the simulated live feed."""
    enabled: bool = Field(default=True, description="Serve the simulated feed")
    trash: int = Field(default=567, ge=0)
    recycle: int = Field(default=275, ge=0)
    compost: int = Field(default=136, ge=0)


class DataSourceConfig(BaseModel):
    """Configuration for the SQL data source."""
    database_url: str = Field(default="sqlite:///waste_metrics.db", description="SQLAlchemy database URL")
    pool_recycle: int = Field(default=280, description="Seconds before pooled connections are recycled")


class ChangeFeedConfig(BaseModel):
    """Configuration for change notifications."""
    implementation: str = Field(default="local", description="Change hub type: local or redis")
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_password: Optional[str] = Field(default=None, description="Redis password")
    channel_prefix: str = Field(default="waste_metrics:changes", description="Pub/sub channel prefix")

    @field_validator("implementation")
    @classmethod
    def validate_implementation(cls, v: str) -> str:
        if v.lower() not in ("local", "redis"):
            raise ValueError(f"Unknown change feed implementation: {v}")
        return v.lower()

    @field_validator("redis_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("redis_port must be between 1 and 65535")
        return v


class EmailConfig(BaseModel):
    """Configuration for the contact-form mailer."""
    api_endpoint: str = Field(default="https://api.resend.com/emails", description="Email API endpoint")
    api_key: Optional[str] = Field(default=None, description="Email API key")
    mail_from: str = Field(default="onboarding@resend.dev", description="Sender address")
    mail_to: List[str] = Field(default_factory=list, description="Recipients of contact submissions")
    subject_prefix: str = Field(default="[Revisent Contact]", description="Subject prefix")
    timeout: int = Field(default=10, description="HTTP request timeout")


class ServerConfig(BaseModel):
    """Configuration for the API server and dashboard."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    dashboard_port: int = Field(default=8050)
    api_base_url: str = Field(default="http://localhost:5000")
    poll_interval_ms: int = Field(default=2000, description="Dashboard polling interval")
    dashboard_role: str = Field(default="admin", description="Role the dashboard presents to the API")
    dashboard_organization_id: Optional[str] = Field(default=None, description="Organization the dashboard is scoped to")


class AppConfig(BaseModel):
    """Root configuration model containing all sections."""
    logging: LoggingConfig
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    demo_feed: DemoFeedConfig = Field(default_factory=DemoFeedConfig)
    data_source: DataSourceConfig = Field(default_factory=DataSourceConfig)
    change_feed: ChangeFeedConfig = Field(default_factory=ChangeFeedConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
