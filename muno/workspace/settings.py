"""Tool configuration loaded from MUNO_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from muno.workspace.constants import EAGER_PATTERNS, STATE_FILE_NAME


class MunoSettings(BaseSettings):
    """muno settings.

    All fields are read from environment variables with the ``MUNO_`` prefix.
    For example, ``MUNO_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    Per-workspace settings (transport preference, default branch) belong in
    ``workspace.overrides`` of ``muno.yaml``, not here.
    """

    model_config = SettingsConfigDict(
        env_prefix="MUNO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "WARNING"

    # -- Workspace layout ------------------------------------------------------
    workspace: str | None = None
    """Explicit workspace root.  When unset the root is discovered from the CWD."""

    state_file: str = STATE_FILE_NAME

    eager_patterns: list[str] = list(EAGER_PATTERNS)
    """Repository name suffixes fetched eagerly under ``fetch: auto``."""

    # -- Git -------------------------------------------------------------------
    git_timeout: int = 600
    """Seconds before a single git invocation is abandoned."""

    clone_depth: int | None = None
    """Shallow clone depth applied when a workspace does not set ``git.shallow_depth``."""

    # -- Interaction -----------------------------------------------------------
    assume_yes: bool = False
    """Answer yes to every confirmation prompt (non-interactive use)."""


@lru_cache(maxsize=1)
def get_settings() -> MunoSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return MunoSettings()
