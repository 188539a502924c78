"""Configuration helpers for the ledger provider multiplexer."""

from __future__ import annotations

from dataclasses import dataclass
import os


DEFAULT_WS_URL = "ws://127.0.0.1:8080/provider"


def _float_env(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings with environment overrides."""

    ws_url: str = os.environ.get("LEDGER_MUX_WS_URL", DEFAULT_WS_URL)
    ping_interval: float = _float_env("LEDGER_MUX_WS_PING_INTERVAL", 20.0)
    reconnect_base_delay: float = _float_env("LEDGER_MUX_RECONNECT_BASE", 0.5)
    reconnect_max_delay: float = _float_env("LEDGER_MUX_RECONNECT_MAX", 30.0)
    request_timeout: float = _float_env("LEDGER_MUX_REQUEST_TIMEOUT", 60.0)
    outbound_queue_size: int = _int_env("LEDGER_MUX_OUTBOUND_QUEUE", 1024)
    events_queue_size: int = _int_env("LEDGER_MUX_EVENTS_QUEUE", 256)
    log_level: str = os.environ.get("LEDGER_MUX_LOG_LEVEL", "INFO")


settings = Settings()
