from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path

from originsync.drift import default_cache_times

DEFAULT_CONFIG_PATH = Path.home() / ".originsync.yaml"


def _positive_int(raw: str, name: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


@dataclass(frozen=True)
class AppConfig:
    config_path: Path
    interval_seconds: int
    once: bool
    dns_server: str
    log_level: str
    request_timeout_seconds: int
    cache_times: int


def load_config(argv: list[str] | None = None) -> AppConfig:
    parser = argparse.ArgumentParser(description="Keep CDN origins and DNS records in sync with local addresses.")
    parser.add_argument("--config", help="Path to the YAML service configuration (default from env or ~/.originsync.yaml).")
    parser.add_argument("--interval", type=int, help="Sync interval in seconds (default from env or 300).")
    parser.add_argument("--once", action="store_true", help="Run one sync cycle and exit.")
    parser.add_argument("--dns", default=None, help="Custom DNS server to check at startup, e.g. 223.5.5.5.")

    args = parser.parse_args(argv)

    config_raw = args.config or os.getenv("ORIGINSYNC_CONFIG")
    config_path = Path(config_raw).expanduser() if config_raw else DEFAULT_CONFIG_PATH
    if config_path.exists() and not config_path.is_file():
        raise ValueError(f"Config path must be a file: {config_path}")

    if args.interval is not None:
        interval = _positive_int(str(args.interval), "--interval")
    else:
        interval = _positive_int(os.getenv("SYNC_INTERVAL_SECONDS", "300"), "SYNC_INTERVAL_SECONDS")

    timeout = _positive_int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"), "REQUEST_TIMEOUT_SECONDS")
    dns_server = args.dns if args.dns is not None else os.getenv("ORIGINSYNC_DNS", "")

    return AppConfig(
        config_path=config_path,
        interval_seconds=interval,
        once=args.once,
        dns_server=dns_server.strip(),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        request_timeout_seconds=timeout,
        cache_times=default_cache_times(),
    )
