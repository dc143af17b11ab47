"""Logging setup shared by the API entrypoint and scripts."""

from __future__ import annotations

import logging

from core.settings import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Install the root handler once using the configured level and format."""

    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=settings.log_format,
    )
