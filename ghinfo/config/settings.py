"""Application settings using Pydantic Settings."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_speed_limit(value: str | int) -> int:
    """Parse a download speed limit such as ``10mb/s``, ``512kb/s`` or ``1048576``."""
    if isinstance(value, int):
        return value
    text = value.strip().lower()
    for suffixes, factor in ((("mb/s", "mbs"), 1024 * 1024), (("kb/s", "kbs"), 1024)):
        for suffix in suffixes:
            if text.endswith(suffix):
                return int(text[: -len(suffix)].strip()) * factor
    return int(text)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    github_api_url: str = "https://api.github.com"
    github_token: str | None = None

    # Cache configuration
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    cache_file: str = "cache.json"
    file_cache_dir: str | None = None
    cache_snapshot_interval_seconds: float = 30.0
    cache_max_files: int = 50

    # Download limits
    max_concurrent_downloads: int = 10
    download_speed_limit: int = 10 * 1024 * 1024  # bytes per second, 0 disables
    max_downloads_per_window: int = 100
    rate_limit_window_secs: int = 60

    @field_validator("download_speed_limit", mode="before")
    @classmethod
    def parse_download_speed_limit(cls, v):
        if isinstance(v, str):
            return parse_speed_limit(v)
        return v

    # Comma separated; unset allows every origin
    cors_allowed_origins: str | None = None

    # Server configuration
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    dev: bool = False
    workers: int = 1
    log_level: str = "info"

    @property
    def blob_dir(self) -> Path:
        """Directory holding cached download bodies."""
        if self.file_cache_dir:
            return Path(self.file_cache_dir)
        return Path(self.cache_file).parent / "cache_files"

    @property
    def cors_origins(self) -> list[str]:
        if not self.cors_allowed_origins or not self.cors_allowed_origins.strip():
            return []
        return [item.strip() for item in self.cors_allowed_origins.split(",") if item.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
