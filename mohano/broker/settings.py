"""Service configuration loaded from MOHANO_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrokerSettings(BaseSettings):
    """Mohano event broker settings.

    All fields are read from environment variables with the ``MOHANO_`` prefix.
    For example, ``MOHANO_MAX_EVENTS=500`` maps to ``max_events``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MOHANO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit serialized JSON log lines instead of the coloured console format."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 7777

    public_url: str | None = None
    """Base URL used when building shareable dashboard links.

    Falls back to the base URL of the incoming request when unset.
    """

    # -- Auth ------------------------------------------------------------------
    api_key: SecretStr | None = None
    """Static key guarding the default workspace.  Open access when unset."""

    open_workspace_creation: bool = True
    """When False, creating a workspace requires the global ``api_key``."""

    # -- Event history -----------------------------------------------------------
    max_events: int = Field(default=2000, ge=1)
    """Ring buffer capacity per workspace."""

    # -- Workspaces ------------------------------------------------------------
    workspace_ttl: float = Field(default=24 * 3600, gt=0)
    """Seconds of inactivity after which a token workspace is evicted."""

    sweep_interval: float = Field(default=3600, gt=0)

    workspace_create_limit: int = Field(default=20, ge=1)
    workspace_create_window: float = Field(default=60, gt=0)
    """Fixed window (seconds) for the process-wide creation rate limit."""

    # -- Subscribers -----------------------------------------------------------
    subscriber_queue_size: int = Field(default=1000, ge=1)
    """Events buffered per subscriber before it is dropped as too slow."""

    stream_heartbeat_interval: float = 15

    # -- Side channels ---------------------------------------------------------
    tasks_dir: Path = Path("~/.claude/tasks").expanduser()
    ui_dir: Path = Path("frontend")

    # -- Helpers ---------------------------------------------------------------

    def resolve_api_key(self) -> str | None:
        """Return the configured global key, treating an empty value as unset."""
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value() or None


@lru_cache(maxsize=1)
def get_settings() -> BrokerSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return BrokerSettings()
