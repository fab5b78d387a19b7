"""Centralized application configuration.

Single source of truth for paths, server and logging settings.
Reads from environment variables (and `.env`, loaded by the entry points)
with sensible defaults.
"""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AppSettings:
    """Settings loaded from environment.

    Usage:
        settings = get_settings()
        print(settings.reports_dir)  # Path("reports")
    """
    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    # Filesystem
    reports_dir: Path = field(default_factory=lambda: Path.cwd() / "reports")
    upload_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "matapp_uploads")
    ui_dir: Path = field(default_factory=lambda: Path.cwd() / "ui")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


def _load_settings_from_env() -> AppSettings:
    """Load settings from environment variables."""
    settings = AppSettings()

    settings.host = os.getenv("MATAPP_HOST", settings.host)
    if os.getenv("PORT"):
        settings.port = int(os.getenv("PORT"))

    if os.getenv("MATAPP_REPORTS_DIR"):
        settings.reports_dir = Path(os.getenv("MATAPP_REPORTS_DIR"))
    if os.getenv("MATAPP_UPLOAD_DIR"):
        settings.upload_dir = Path(os.getenv("MATAPP_UPLOAD_DIR"))
    if os.getenv("MATAPP_UI_DIR"):
        settings.ui_dir = Path(os.getenv("MATAPP_UI_DIR"))

    settings.log_level = os.getenv("MATAPP_LOG_LEVEL", settings.log_level).upper()
    settings.log_json = os.getenv("MATAPP_LOG_JSON", "").lower() in ("1", "true")

    return settings


# Singleton instance
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get the settings singleton.

    Settings are loaded once from environment on first access.
    """
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_settings() -> AppSettings:
    """Force reload settings from environment.

    Useful for testing or after env changes.
    """
    global _settings
    _settings = _load_settings_from_env()
    return _settings
