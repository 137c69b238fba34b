from enum import Enum
from typing import Annotated, Literal

from fastapi import Depends
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AuthMode(str, Enum):
    NONE = "none"
    DEV = "dev"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Pulse Engine", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=True, description="Debug mode")

    # Authentication
    auth_mode: AuthMode = Field(
        default=AuthMode.NONE, description="Authentication mode"
    )
    dev_user_id: str = Field(
        default="DEV_USER", description="Default user ID in none auth mode"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3000, description="Server port")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./pulse.db",
        description="Database connection URL",
    )
    db_echo: bool = Field(default=False, description="Echo SQL statements")

    # Engine
    engine_enabled: bool = Field(
        default=True, description="Start the background loops with the app"
    )
    engine_shutdown_grace_s: float = Field(
        default=10.0, description="Seconds an in-flight tick may run after stop"
    )
    job_loop_interval_s: float = Field(default=30.0, description="Job runner interval")
    reminder_loop_interval_s: float = Field(
        default=10.0, description="Reminder check interval"
    )
    email_loop_interval_s: float = Field(default=300.0, description="Email check interval")
    calendar_loop_interval_s: float = Field(
        default=600.0, description="Calendar check interval"
    )
    repository_loop_interval_s: float = Field(
        default=600.0, description="Webhook registration sync interval"
    )
    findings_loop_interval_s: float = Field(
        default=600.0, description="Repository findings check interval"
    )
    cleanup_loop_interval_s: float = Field(
        default=3600.0, description="Dedup ledger cleanup interval"
    )

    # Jobs
    job_handler_timeout_s: float = Field(
        default=60.0, description="Upper bound for a single handler invocation"
    )
    job_create_grace_s: float = Field(
        default=60.0, description="How far in the past run_at may be at creation"
    )

    # Notifications
    dedup_retention_days: int = Field(
        default=30, description="Days a dedup record is kept before purge"
    )
    subjects: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Subject IDs polled by event sources"
    )
    self_sent_markers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "pulse",
            "push summary:",
            "security alert:",
            "pr for #",
        ],
        description="Subject fragments identifying mail sent by this engine",
    )
    calendar_alert_window_min: int = Field(
        default=17, description="Minutes ahead an event triggers an alert"
    )

    # Webhooks
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    github_token: str | None = Field(default=None, description="GitHub API token")
    github_hook_events: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["push", "issues"],
        description="Events the registered hook subscribes to",
    )
    public_base_url: str | None = Field(
        default=None, description="Public base URL of this process"
    )
    tunnel_api_url: str | None = Field(
        default="http://127.0.0.1:4040/api/tunnels",
        description="Local tunnel agent API used to discover the public URL",
    )
    webhook_path: str = Field(
        default="/webhooks/github", description="Path of the webhook receiver"
    )
    external_timeout_s: float = Field(
        default=15.0, description="Timeout for external HTTP calls"
    )

    @field_validator("subjects", "self_sent_markers", "github_hook_events", mode="before")
    @classmethod
    def split_comma_separated(cls, value):
        """Accept comma separated strings from the environment."""
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        if self.environment == "production" and self.auth_mode == AuthMode.NONE:
            raise ValueError(
                "AUTH_MODE=none is not allowed in production environment. "
                "Use AUTH_MODE=dev behind an authenticating proxy."
            )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection function for settings."""
    return settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
