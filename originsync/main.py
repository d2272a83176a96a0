from __future__ import annotations

import logging
import sys

from originsync.config import load_config
from originsync.logging_setup import setup_logging
from originsync.netcheck import select_dns_server
from originsync.orchestrator import Reconciler
from originsync.store import ConfigStore


def main(argv: list[str] | None = None) -> int:
    try:
        config = load_config(argv=argv)
    except Exception as exc:  # noqa: BLE001
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)
    logger = logging.getLogger("originsync")
    logger.info(
        "Starting originsync config=%s interval=%ss once=%s cache_times=%d",
        config.config_path,
        config.interval_seconds,
        config.once,
        config.cache_times,
    )

    dns_server = select_dns_server(custom=config.dns_server, logger=logger)
    if dns_server is None:
        logger.warning("DNS reachability check failed; provider calls may not resolve.")
    else:
        logger.info("DNS check passed via %s (reported only, requests use the system resolver).", dns_server)

    reconciler = Reconciler(
        store=ConfigStore(config.config_path, logger=logger),
        logger=logger,
        timeout_seconds=config.request_timeout_seconds,
        cache_times=config.cache_times,
    )

    if config.once:
        summary = reconciler.run_once()
        return 0 if summary is not None else 1

    try:
        reconciler.run_forever(config.interval_seconds)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
