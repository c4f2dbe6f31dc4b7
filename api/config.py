"""Server settings read from the environment."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

# Env var names
ENV_ROOM_TTL_MINUTES = "AVALON_ROOM_TTL_MINUTES"
ENV_ROOM_EXTENSION_MINUTES = "AVALON_ROOM_EXTENSION_MINUTES"
ENV_LOG_LEVEL = "AVALON_LOG_LEVEL"
ENV_CORS_ORIGINS = "AVALON_CORS_ORIGINS"

DEFAULT_ROOM_TTL_MINUTES = 60
DEFAULT_ROOM_EXTENSION_MINUTES = 120
DEFAULT_LOG_LEVEL = "INFO"


def _env_minutes(name: str, default: int) -> timedelta:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return timedelta(minutes=default)
    try:
        minutes = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a whole number of minutes, got {raw!r}") from None
    if minutes <= 0:
        raise ValueError(f"{name} must be a positive number of minutes, got {raw}")
    return timedelta(minutes=minutes)


def room_ttl() -> timedelta:
    """How long a new room lives without activity."""
    return _env_minutes(ENV_ROOM_TTL_MINUTES, DEFAULT_ROOM_TTL_MINUTES)


def room_extension() -> timedelta:
    """How far each action pushes a room's expiry."""
    return _env_minutes(ENV_ROOM_EXTENSION_MINUTES, DEFAULT_ROOM_EXTENSION_MINUTES)


def cors_origins() -> list[str]:
    raw = os.environ.get(ENV_CORS_ORIGINS, "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def log_level() -> str:
    return (os.environ.get(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()


@dataclass(frozen=True)
class Settings:
    room_ttl: timedelta
    room_extension: timedelta
    cors_origins: list[str]
    log_level: str


def load_settings() -> Settings:
    """Read every setting once. Malformed values raise ValueError."""
    return Settings(
        room_ttl=room_ttl(),
        room_extension=room_extension(),
        cors_origins=cors_origins(),
        log_level=log_level(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the log level (AVALON_LOG_LEVEL by default) to the avalon and api loggers."""
    level = level or log_level()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    for name in ("avalon", "api"):
        logging.getLogger(name).setLevel(level)
