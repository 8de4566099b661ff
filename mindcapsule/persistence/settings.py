"""Engine configuration loaded from MIND_CAPSULE_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_HOME = Path.home() / ".mind-capsule"


class MindCapsuleSettings(BaseSettings):
    """Mind Capsule persistence settings.

    All fields are read from environment variables with the ``MIND_CAPSULE_``
    prefix.  For example, ``MIND_CAPSULE_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MIND_CAPSULE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Data storage ----------------------------------------------------------
    store_path: str = str(_DEFAULT_HOME / "store.json")
    """Shared key/value store holding the workspace catalog (and legacy records)."""

    default_workspace_root: str = str(Path.home() / "MindCapsule")
    """Parent folder for workspaces created without picking a folder."""


@lru_cache(maxsize=1)
def get_settings() -> MindCapsuleSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return MindCapsuleSettings()
