from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except ValueError:
        return int(default)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return str(default)
    s = str(raw).strip()
    return s if s else str(default)


@dataclass(frozen=True)
class Settings:
    # Slack: an incoming webhook wins over bot token + channel.
    slack_webhook_url: str = field(default_factory=lambda: _env_str("SLACK_WEBHOOK_URL", ""))
    slack_bot_token: str = field(default_factory=lambda: _env_str("SLACK_BOT_TOKEN", ""))
    slack_channel: str = field(default_factory=lambda: _env_str("SLACK_CHANNEL", ""))

    # "sqlite" or "memory". Memory loses dedupe state on restart.
    store_backend: str = field(default_factory=lambda: _env_str("STATUS_STORE_BACKEND", "sqlite").lower())
    store_path: str = field(default_factory=lambda: _env_str("STATUS_STORE_PATH", "status-notify.db"))

    suppress_window_seconds: int = field(default_factory=lambda: _env_int("NOTIFY_SUPPRESS_SECONDS", 120))
    reset_unknown_minutes: int = field(default_factory=lambda: _env_int("RESET_UNKNOWN_MINUTES", 60))
    coalesce_seconds: int = field(default_factory=lambda: _env_int("COALESCE_SECONDS", 60))
    poll_interval_seconds: int = field(default_factory=lambda: _env_int("POLL_INTERVAL_SECONDS", 300))

    http_timeout_seconds: int = field(default_factory=lambda: _env_int("HTTP_TIMEOUT_SECONDS", 30))
    fetch_concurrency: int = field(default_factory=lambda: _env_int("FETCH_CONCURRENCY", 20))

    # Base URL of the deployment serving vendor-normalised JSON. Unset drops
    # the local_json services from the default catalogue.
    status_base_url: str = field(default_factory=lambda: _env_str("STATUS_BASE_URL", ""))

    log_level: str = field(default_factory=lambda: _env_str("LOG_LEVEL", "INFO").upper())
    host: str = field(default_factory=lambda: _env_str("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("PORT", 5173))

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_webhook_url) or bool(self.slack_bot_token and self.slack_channel)
