"""Environment configuration and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

PACKAGE_LOGGER = "forming_planner"
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {value!r}")


@dataclass(slots=True)
class Settings:
    """Application settings read from the environment."""

    database_path: str = "planner.sqlite3"
    log_level: str = "INFO"
    seed_default_machines: bool = True
    title: str = "Press Brake Production Planner"

    def validate(self) -> "Settings":
        if not self.database_path:
            raise ValueError("FORMING_PLANNER_DB must not be empty")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")
        return self


def load_settings(env_path: Optional[str] = None) -> Settings:
    """Load settings from the process environment and an optional ``.env`` file."""

    if env_path:
        load_dotenv(env_path)
    else:
        load_dotenv()
    settings = Settings(
        database_path=os.getenv("FORMING_PLANNER_DB", "planner.sqlite3"),
        log_level=os.getenv("FORMING_PLANNER_LOG_LEVEL", "INFO"),
        seed_default_machines=_env_flag("FORMING_PLANNER_SEED_MACHINES", True),
        title=os.getenv("FORMING_PLANNER_TITLE", "Press Brake Production Planner"),
    )
    return settings.validate()


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a console handler to the package logger.

    Repeated calls only adjust the level.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())
    if not any(getattr(handler, "_forming_planner", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._forming_planner = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


__all__ = ["Settings", "load_settings", "configure_logging", "PACKAGE_LOGGER"]
