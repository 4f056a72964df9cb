"""Configuration loader.

The service reads its configuration from environment variables once, at
startup, and hands the resulting objects to the components that need
them.  The execution core itself takes no configuration: its limits are
fixed constants plus the per‑request timeout.

Environment variables:

``PORT`` / ``HOST``
    Address the API server binds to.  Defaults to ``0.0.0.0:3000``.

``SCRIPTEXEC_API_KEY``
    Optional shared secret.  When set, every request must include it in
    the ``x‑api‑key`` header.

``SCRIPTEXEC_PYTHON_EXECUTABLE``
    Interpreter used for Python snippets.  Defaults to ``python3``.

``SCRIPTEXEC_RATE_LIMIT_MAX`` / ``SCRIPTEXEC_RATE_LIMIT_WINDOW_SECONDS``
    Requests allowed per client IP on ``/api/`` routes within one window.
    Defaults to 100 requests per 900 seconds.

``SCRIPTEXEC_MAX_BODY_BYTES``
    Largest accepted request body.  Defaults to 1 MiB.

``SCRIPTEXEC_CORS_ORIGINS``
    Comma‑separated list of allowed CORS origins.  Defaults to ``*``.

``WEBHOOK_URL`` / ``SLACK_WEBHOOK_URL``
    Optional notification targets that receive a copy of every result.

``SCRIPTEXEC_WEBHOOK_TIMEOUT_SECONDS``
    Timeout for each outbound notification.  Defaults to 5.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _int_var(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {val}")


def _optional_var(name: str) -> Optional[str]:
    val = os.getenv(name, "").strip()
    return val or None


@dataclass(frozen=True)
class NotifierConfig:
    """Targets for outbound result notifications."""

    webhook_url: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    timeout_seconds: int = 5

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url or self.slack_webhook_url)


@dataclass(frozen=True)
class Config:
    """Centralised configuration object."""

    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str = ""
    python_executable: str = "python3"
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 15 * 60
    max_body_bytes: int = 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    notifier: NotifierConfig = field(default_factory=NotifierConfig)

    @classmethod
    def load(cls) -> "Config":
        cors_env = os.getenv("SCRIPTEXEC_CORS_ORIGINS", "*")
        cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]

        rate_limit_max = _int_var("SCRIPTEXEC_RATE_LIMIT_MAX", 100)
        rate_limit_window_seconds = _int_var("SCRIPTEXEC_RATE_LIMIT_WINDOW_SECONDS", 15 * 60)
        if rate_limit_max < 1 or rate_limit_window_seconds < 1:
            raise ValueError("Rate limit settings must be positive integers")

        notifier = NotifierConfig(
            webhook_url=_optional_var("WEBHOOK_URL"),
            slack_webhook_url=_optional_var("SLACK_WEBHOOK_URL"),
            timeout_seconds=_int_var("SCRIPTEXEC_WEBHOOK_TIMEOUT_SECONDS", 5),
        )

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_var("PORT", 3000),
            api_key=os.getenv("SCRIPTEXEC_API_KEY", ""),
            python_executable=os.getenv("SCRIPTEXEC_PYTHON_EXECUTABLE", "python3"),
            rate_limit_max=rate_limit_max,
            rate_limit_window_seconds=rate_limit_window_seconds,
            max_body_bytes=_int_var("SCRIPTEXEC_MAX_BODY_BYTES", 1024 * 1024),
            cors_origins=cors_origins or ["*"],
            notifier=notifier,
        )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        It exists to provide a more intuitive name when consumed in
        application code.
        """
        return cls.load()
