from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Centralized configuration model for all environment variables."""

    # Discord configuration
    discord_token: str = Field(default="", env="DISCORD_TOKEN")
    command_prefix: str = Field(default="!", env="COMMAND_PREFIX")

    # Message synchronization configuration
    content_separator: str = Field(default="\n", env="CONTENT_SEPARATOR")
    sync_max_tries: int = Field(default=3, env="SYNC_MAX_TRIES")

    # OpenTelemetry configuration
    otel_service_name: str = Field(default="embedtree", env="OTEL_SERVICE_NAME")
    otel_exporter_otlp_endpoint: str = Field(
        default="localhost:4317", env="OTEL_EXPORTER_OTLP_ENDPOINT"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }

    @field_validator("command_prefix")
    @classmethod
    def validate_command_prefix(cls, v: str) -> str:
        """Validate the command prefix is not blank."""
        if not v.strip():
            raise ValueError("COMMAND_PREFIX must not be blank")
        return v

    @field_validator("sync_max_tries")
    @classmethod
    def validate_sync_max_tries(cls, v: int) -> int:
        """Validate synchronization attempts is positive."""
        if v <= 0:
            raise ValueError("SYNC_MAX_TRIES must be positive")
        return v
