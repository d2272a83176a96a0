from __future__ import annotations

import enum
import logging
import os
import threading
from dataclasses import dataclass, field

DEFAULT_CACHE_TIMES = 5
FAILURES_BEFORE_WEBHOOK = 3


def default_cache_times() -> int:
    raw = os.getenv("ORIGINSYNC_CACHE_TIMES", "")
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_CACHE_TIMES
    return value if value > 0 else DEFAULT_CACHE_TIMES


class Decision(enum.Enum):
    SKIP = "skip"
    FIRST_RUN = "first_run"
    DRIFT = "drift"
    FORCED = "forced"

    @property
    def should_update(self) -> bool:
        return self is not Decision.SKIP


@dataclass(frozen=True)
class Evaluation:
    decision: Decision
    changed: dict[str, tuple[str | None, str]] = field(default_factory=dict)


class DriftCache:
    """Per-service memory of resolved addresses, forced-refresh countdown and failure streak."""

    def __init__(self, default_times: int | None = None, logger: logging.Logger | None = None) -> None:
        self.default_times = default_times if default_times is not None else default_cache_times()
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self.times = self.default_times
        self.has_run = False
        self.times_failed = 0
        self._values: dict[str, str] = {}

    def check_changed(self, key: str, value: str) -> tuple[bool, str | None]:
        with self._lock:
            old = self._values.get(key)
            return old != value, old

    def update_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def values(self) -> dict[str, str]:
        with self._lock:
            return dict(self._values)

    def reset_times(self) -> None:
        with self._lock:
            self.times = self.default_times

    def evaluate(self, resolved: dict[str, str]) -> Evaluation:
        """Decide whether this cycle should push an update, given freshly resolved dynamic values.

        Changed values are written back whatever the outcome. Callers only reach this once every
        dynamic source resolved, so a resolution failure never moves the counters.
        """
        with self._lock:
            changed: dict[str, tuple[str | None, str]] = {}
            for key, value in resolved.items():
                old = self._values.get(key)
                if old != value:
                    changed[key] = (old, value)
                    self._values[key] = value

            if not self.has_run:
                self.has_run = True
                return Evaluation(Decision.FIRST_RUN, changed)
            if changed:
                return Evaluation(Decision.DRIFT, changed)

            self.times -= 1
            if self.times <= 0:
                self.times = self.default_times
                return Evaluation(Decision.FORCED)
            return Evaluation(Decision.SKIP)

    def record_success(self) -> bool:
        with self._lock:
            self.times_failed = 0
        return True

    def record_failure(self) -> bool:
        with self._lock:
            self.times_failed += 1
            if self.times_failed >= FAILURES_BEFORE_WEBHOOK:
                self._logger.warning("Update failed %d times in a row, sending webhook.", self.times_failed)
                self.times_failed = 0
                return True
            self._logger.warning(
                "Update failed %d time(s) in a row; webhook fires after %d.",
                self.times_failed,
                FAILURES_BEFORE_WEBHOOK,
            )
            return False
