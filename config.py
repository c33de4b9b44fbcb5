import logging
import os

from settings import SETTINGS


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def get_setting(name: str, default=None):
    """Resolve a setting: non-empty environment variable first, then SETTINGS."""

    v = os.getenv(name)
    if v is not None and v.strip() != "":
        return v.strip()
    return SETTINGS.get(name, default)


def get_list_setting(name: str) -> list[str]:
    """Resolve a list setting; env values are comma-separated."""

    raw = get_setting(name, [])
    if isinstance(raw, str):
        return [p.strip() for p in raw.split(",") if p.strip()]
    return [str(p) for p in (raw or [])]


class Config:
    """Base configuration loaded from environment variables."""

    SECRET_KEY = os.getenv("SECRET_KEY", str(SETTINGS["SECRET_KEY"]))

    # Feature flags
    UNIVERSAL_MOCK_MODE: bool = _env_bool("UNIVERSAL_MOCK_MODE", False)

    # Auth
    AUTH_JWT_SECRET: str = str(get_setting("AUTH_JWT_SECRET"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", str(SETTINGS["LOG_LEVEL"])).upper()


def configure_logging(app_logger: logging.Logger, level_name: str) -> None:
    """Configure application logging in a simple, predictable way."""

    level = getattr(logging, level_name, logging.INFO)

    # Avoid duplicate handlers (e.g., in tests or reload scenarios)
    if app_logger.handlers:
        app_logger.setLevel(level)
        return

    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    app_logger.addHandler(handler)
    app_logger.setLevel(level)
