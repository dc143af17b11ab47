"""Application settings and environment configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
import os
from datetime import timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo


@dataclass
class Settings:
    """Runtime configuration resolved from environment variables."""

    litigation_api_key: str = ""
    litigation_base_url: str = "http://127.0.0.1:8080/api/v1"
    service_mode: str = "stub"
    http_timeout: float = 30.0
    display_timezone: str = "UTC"
    upcoming_window_days: int = 7
    alert_exclude_weekends: bool = True
    job_poll_interval: float = 2.0
    job_poll_timeout: float = 600.0
    triage_relevance_threshold: float = 0.5
    triage_privilege_threshold: float = 0.7
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self) -> None:
        env_api_key = os.getenv("LITIGATION_API_KEY")
        env_base_url = os.getenv("LITIGATION_API_BASE")
        env_mode = os.getenv("SERVICE_MODE")
        env_timezone = os.getenv("DISPLAY_TIMEZONE")
        env_log_level = os.getenv("LOG_LEVEL")
        env_log_format = os.getenv("LOG_FORMAT")
        env_alert_weekends = os.getenv("ALERT_EXCLUDE_WEEKENDS")
        if env_api_key:
            self.litigation_api_key = env_api_key
        if env_base_url:
            self.litigation_base_url = env_base_url.rstrip("/")
        if env_mode:
            self.service_mode = env_mode.lower()
        if env_timezone:
            self.display_timezone = env_timezone
        if env_log_level:
            self.log_level = env_log_level.upper()
        if env_log_format:
            self.log_format = env_log_format
        if env_alert_weekends:
            self.alert_exclude_weekends = env_alert_weekends.lower() in ("1", "true", "yes")
        self.http_timeout = _env_number("HTTP_TIMEOUT", self.http_timeout)
        self.upcoming_window_days = int(_env_number("UPCOMING_WINDOW_DAYS", self.upcoming_window_days))
        self.job_poll_interval = _env_number("JOB_POLL_INTERVAL", self.job_poll_interval)
        self.job_poll_timeout = _env_number("JOB_POLL_TIMEOUT", self.job_poll_timeout)
        self.triage_relevance_threshold = _env_number(
            "TRIAGE_RELEVANCE_THRESHOLD", self.triage_relevance_threshold
        )
        self.triage_privilege_threshold = _env_number(
            "TRIAGE_PRIVILEGE_THRESHOLD", self.triage_privilege_threshold
        )

    @property
    def resolved_service_mode(self) -> str:
        """Choose between the remote services or stubbed responses."""

        if self.service_mode in ("http", "stub"):
            return self.service_mode
        # Anything unrecognised falls back to stub so tests never reach the network.
        return "stub"

    @property
    def tz(self) -> tzinfo:
        """Timezone used to decide which calendar day an instant belongs to."""

        if self.display_timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.display_timezone)


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
