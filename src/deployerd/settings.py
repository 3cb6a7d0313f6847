"""Runtime settings for deployerd.

Tunables come from the environment (optionally seeded from a .env file by the
entry point). The destination directory and the watched branch reference are
fixed constants rather than settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

USER_AGENT_NAME = "deployerd"
USER_AGENT_VERSION = "1.0"

# Snapshots are always unpacked here; not configurable.
DATA_DIR = Path("~/.local/share/deployerd").expanduser()

# The "primary branch" reference the prober looks for.
DEFAULT_BRANCH_REF = "refs/heads/main"

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    """Configuration resolved once at startup."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    api_url: str = DEFAULT_API_URL
    github_token: Optional[str] = None
    log_level: int = logging.INFO
    destination: Path = DATA_DIR


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be greater than zero, got {raw!r}")
    return value


def _log_level(env: Mapping[str, str]) -> int:
    raw = (env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        raise ConfigError(f"LOG_LEVEL must be a logging level name, got {raw!r}")
    return level


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Settings populated from the environment

    Raises:
        ConfigError: If a variable holds an invalid value
    """
    if env is None:
        env = os.environ

    api_url = (env.get("DEPLOYERD_API_URL") or DEFAULT_API_URL).strip().rstrip("/")
    if not api_url.startswith(("http://", "https://")):
        raise ConfigError(f"DEPLOYERD_API_URL must be an http(s) URL, got {api_url!r}")

    token = (env.get("GITHUB_TOKEN") or "").strip() or None

    return Settings(
        poll_interval=_positive_float(env, "DEPLOYERD_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        http_timeout=_positive_float(env, "DEPLOYERD_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        api_url=api_url,
        github_token=token,
        log_level=_log_level(env),
    )
