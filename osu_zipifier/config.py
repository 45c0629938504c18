"""
Configuration management for osu-zipifier.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MIRROR_URLS = (
    "https://catboy.best/d/{id},"
    "https://chimu.moe/d/{id},"
    "https://proxy.nerinyan.moe/d/{id}"
)


def parse_mirror_urls(raw: str) -> List[str]:
    """
    Parse the comma-separated mirror URL templates.

    Order is preserved since it is the download priority. Blank entries are
    dropped.

    Examples:
        "https://a/d/{id}, https://b/d/{id}" -> ["https://a/d/{id}", "https://b/d/{id}"]
        "" -> []
    """
    if not raw or not raw.strip():
        return []

    templates = [template.strip() for template in raw.split(",")]
    return [t for t in templates if t]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="osu-zipifier")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)
    api_workers: int = Field(default=1)

    # Resolution cache
    database_url: str = Field(default="sqlite:///./diff-beatmap.db")

    # Artifact store
    store_dir: str = Field(default="./osu_maps")
    artifact_suffix: str = Field(default=".osz")
    write_workers: int = Field(default=4)
    # Staging files older than this belong to a dead writer
    staging_max_age_seconds: int = Field(default=3600)

    # Mirrors, in priority order
    mirror_urls: str = Field(
        default=DEFAULT_MIRROR_URLS,
        description="Comma-separated download URL templates, highest priority first. '{id}' is replaced by the beatmap set id.",
    )

    # HTTP client
    http_timeout_seconds: float = Field(default=30.0)
    http_max_retries: int = Field(default=3)
    http_backoff_seconds: float = Field(default=1.0)
    http_backoff_max_seconds: float = Field(default=30.0)

    # osu! API
    osu_client_id: Optional[str] = Field(default=None)
    osu_client_secret: Optional[str] = Field(default=None)
    osu_api_base: str = Field(default="https://osu.ppy.sh/api/v2")
    osu_oauth_url: str = Field(default="https://osu.ppy.sh/oauth/token")
    token_refresh_margin_seconds: int = Field(default=3600)
    token_retry_seconds: int = Field(default=60)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @property
    def mirrors(self) -> List[str]:
        return parse_mirror_urls(self.mirror_urls)

    @property
    def has_osu_credentials(self) -> bool:
        return bool(self.osu_client_id and self.osu_client_secret)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
