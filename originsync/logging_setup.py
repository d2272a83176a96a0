from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stdout, force=True)
    # urllib3 logs every connection at DEBUG; keep it quieter than our own output.
    logging.getLogger("urllib3").setLevel(max(resolved, logging.WARNING))
