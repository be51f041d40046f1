"""Application settings loaded from environment variables and .env files."""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FALLBACK_SONG_ID = "Tj6fhurtstzgdpvfm4xv6i5cei4"


class StreamQuality(str, Enum):
    """Bitrate the backend streams (and we download) songs in."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def api_value(self) -> str:
        """Value of the backend's ``opt`` query parameter."""
        return {"LOW": "low", "MEDIUM": "med", "HIGH": "hi"}[self.value]


# Hey future me, every field maps to GPLAYBOT_<FIELD> in the environment (or .env)!
# Secrets are SecretStr so they never show up in repr() or logs. The token is the
# one entry we WRITE back at runtime - that goes through the state store, not here.
# Settings are read once at startup; changing env vars later does nothing.
class Settings(BaseSettings):
    """GPlayBot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GPLAYBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="gplaybot", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json_format: bool = Field(default=False, description="Emit JSON logs")

    # Account
    username: str = Field(
        default="",
        description="Username or email of the Google account with an AllAccess subscription",
    )
    password: SecretStr = Field(
        default=SecretStr(""), description="Password / app password of the account"
    )
    device_id: SecretStr = Field(
        default=SecretStr(""),
        description="IMEI or GoogleID of a device with Play Music installed",
    )
    token: SecretStr | None = Field(
        default=None, description="Previously fetched auth token"
    )

    # Provider
    stream_quality: StreamQuality = Field(
        default=StreamQuality.HIGH,
        description="Quality in which songs are streamed",
    )
    cache_time: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Minutes until unused cached songs are dropped",
    )
    show_videos: bool = Field(
        default=False, description="Delegate songs to YouTube if a video exists"
    )
    video_provider_id: str | None = Field(
        default=None,
        description="Id of the host's video provider plugin (delegation target)",
    )
    storage_dir: Path = Field(
        default=Path("data"), description="Base directory for plugin file storage"
    )
    state_file: Path | None = Field(
        default=None,
        description="JSON file for persisted token and station seed (memory if unset)",
    )

    # Backend endpoints
    api_base_url: str = Field(
        default="https://mclients.googleapis.com/sj/v2.5",
        description="Play Music API base URL",
    )
    auth_url: str = Field(
        default="https://android.clients.google.com/auth",
        description="Credential exchange endpoint",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout (s)")
    token_cooldown_seconds: float = Field(
        default=60.0, ge=0, description="Minimum time between token refreshes"
    )

    # Suggester
    fallback_song_id: str = Field(
        default=DEFAULT_FALLBACK_SONG_ID,
        description="ID of a song to build the radio upon",
    )
    station_max_retries: int = Field(
        default=5, ge=1, le=100, description="Station fetch attempts per refill"
    )
    station_retry_delay: float = Field(
        default=0.5, ge=0, description="Initial delay between station fetch attempts"
    )
    station_max_retry_delay: float = Field(
        default=30.0, ge=0, description="Cap for the station retry backoff"
    )

    @field_validator("fallback_song_id")
    @classmethod
    def _check_song_id(cls, value: str) -> str:
        if not value.startswith("T"):
            raise ValueError("Song IDs must start with 'T'")
        return value

    @property
    def video_delegation_enabled(self) -> bool:
        """Videos are only used if enabled AND a video provider is available."""
        return self.show_videos and bool(self.video_provider_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
