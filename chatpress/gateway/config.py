import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from chatpress.gateway.constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_TOMBSTONE_BODIES,
    DISCORD_API_BASE,
    HISTORY_PAGE_LIMIT,
)


class Settings(BaseSettings):
    discord_token: str | None = None
    discord_api_base: str = DISCORD_API_BASE
    request_timeout_seconds: float = 30.0

    channel_id: str
    guild_id: str | None = None  # needed for role and custom emoji lookups

    site_name: str = "MGTV24 News"
    site_description: str = "Bringing you news from the community."
    base_url: str = "http://localhost:8000"
    display_timezone: str = "Europe/Berlin"  # bylines only; <time> elements stay UTC

    page_size: int = DEFAULT_PAGE_SIZE
    history_page_limit: int = HISTORY_PAGE_LIMIT
    tombstone_bodies: list[str] = list(DEFAULT_TOMBSTONE_BODIES)
    blacklisted_post_ids: list[str] = []

    resolver_timeout_seconds: float | None = 10.0
    concurrent_resolution: bool = False  # fan out sibling lookups; output order is unchanged

    # Periodic rebuild; stands in for platform change notifications. 0 disables.
    refresh_interval_seconds: int = 300

    host: str = "0.0.0.0"
    port: int = 8000
    log_dir: Path = Path("logs")
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=[os.getenv("ENV_FILE", ""), ".env"],
        extra="ignore",
        env_nested_delimiter="__",
    )


def get_settings() -> Settings:  # ty: ignore[invalid-return-type]
    """This is only used for dependency references, see __init__.py:

    app.dependency_overrides[get_settings] = lambda: settings
    """
    ...
