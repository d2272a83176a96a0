from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import requests

from originsync.drift import DriftCache, default_cache_times
from originsync.errors import ConfigError
from originsync.http_client import DEFAULT_TIMEOUT_SECONDS
from originsync.ip_resolver import CYCLE_CACHE, CycleCache
from originsync.models import Snapshot
from originsync.providers import default_cdn_registry, default_dns_registry
from originsync.providers.base import Status
from originsync.providers.registry import AdapterRegistry
from originsync.store import ConfigStore
from originsync.webhook import send_webhook


class ServiceKind(str, enum.Enum):
    CDN = "CDN"
    DNS = "DNS"


class ReconcileSession:
    """Full-refresh requests raised outside the timer loop; the next pass of that kind consumes them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._force = {kind: False for kind in ServiceKind}

    def request_full_refresh(self, kind: ServiceKind | None = None) -> None:
        with self._lock:
            for target in ServiceKind if kind is None else (kind,):
                self._force[target] = True

    def full_refresh_requested(self, kind: ServiceKind) -> bool:
        with self._lock:
            return self._force[kind]

    def consume_full_refresh(self, kind: ServiceKind) -> bool:
        with self._lock:
            requested = self._force[kind]
            self._force[kind] = False
            return requested


@dataclass(frozen=True)
class PassSummary:
    kind: ServiceKind
    statuses: dict[str, Status] = field(default_factory=dict)
    skipped: int = 0
    errors: int = 0
    webhooks: int = 0
    config_changed: bool = False


@dataclass(frozen=True)
class CycleSummary:
    cdn: PassSummary | None
    dns: PassSummary | None


Notifier = Callable[..., bool]


def _cache_keys(services: Sequence[Any]) -> list[str]:
    keys: list[str] = []
    seen: set[str] = set()
    for index, service in enumerate(services):
        key = service.id or f"#{index}"
        if key in seen:
            key = f"{key}#{index}"
        seen.add(key)
        keys.append(key)
    return keys


class Reconciler:
    def __init__(
        self,
        store: ConfigStore,
        cdn_registry: AdapterRegistry | None = None,
        dns_registry: AdapterRegistry | None = None,
        session: requests.Session | None = None,
        reconcile_session: ReconcileSession | None = None,
        logger: logging.Logger | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        cache_times: int | None = None,
        cycle_cache: CycleCache | None = None,
        notifier: Notifier = send_webhook,
    ) -> None:
        self._store = store
        self._registries = {
            ServiceKind.CDN: cdn_registry or default_cdn_registry(),
            ServiceKind.DNS: dns_registry or default_dns_registry(),
        }
        self._session = session or requests.Session()
        self.session = reconcile_session or ReconcileSession()
        self._logger = logger or logging.getLogger(__name__)
        self._timeout_seconds = timeout_seconds
        self._cache_times = cache_times if cache_times is not None else default_cache_times()
        self._cycle_cache = cycle_cache if cycle_cache is not None else CYCLE_CACHE
        self._notifier = notifier
        self._caches_lock = threading.Lock()
        self._caches: dict[ServiceKind, dict[str, DriftCache]] = {kind: {} for kind in ServiceKind}

    def drift_caches(self, kind: ServiceKind) -> dict[str, DriftCache]:
        with self._caches_lock:
            return dict(self._caches[kind])

    def _caches_for(self, kind: ServiceKind, keys: list[str], rebuild: bool) -> list[DriftCache]:
        with self._caches_lock:
            current = {} if rebuild else self._caches[kind]
            caches = {key: current.get(key) or DriftCache(self._cache_times) for key in keys}
            dropped = set(self._caches[kind]) - set(caches)
            if rebuild:
                self._logger.info("Rebuilding %s drift caches for %d service(s).", kind.value, len(keys))
            elif dropped:
                self._logger.info("Dropping %s drift caches for removed services: %s", kind.value, ", ".join(sorted(dropped)))
            self._caches[kind] = caches
            return [caches[key] for key in keys]

    def run_pass(self, kind: ServiceKind, services: Sequence[Any], snapshot: Snapshot) -> PassSummary:
        rebuild = self.session.consume_full_refresh(kind)
        keys = _cache_keys(services)
        caches = self._caches_for(kind, keys, rebuild)
        registry = self._registries[kind]

        statuses: dict[str, Status] = {}
        skipped = errors = webhooks = 0
        config_changed = False
        for key, service, cache in zip(keys, services, caches):
            adapter = registry.create(
                service.service,
                session=self._session,
                logger=self._logger,
                timeout_seconds=self._timeout_seconds,
                cycle_cache=self._cycle_cache,
            )
            if adapter is None:
                skipped += 1
                continue
            try:
                result = adapter.run(service, cache)
                statuses[key] = result.status
                config_changed = config_changed or result.config_changed
                if snapshot.webhook.enabled and adapter.should_send_webhook():
                    webhooks += 1
                    self._notifier(
                        snapshot.webhook,
                        kind.value,
                        adapter.service_name,
                        result.status.value,
                        logger=self._logger,
                        session=self._session,
                    )
            except Exception as exc:  # noqa: BLE001
                errors += 1
                self._logger.exception("Unexpected error reconciling %s service %s: %s", kind.value, service.display_name, exc)

        if config_changed:
            try:
                self._store.save(snapshot)
            except OSError as exc:
                self._logger.error("Failed to save configuration after %s pass: %s", kind.value, exc)

        return PassSummary(
            kind=kind,
            statuses=statuses,
            skipped=skipped,
            errors=errors,
            webhooks=webhooks,
            config_changed=config_changed,
        )

    def run_once(self) -> CycleSummary | None:
        try:
            snapshot = self._store.load()
        except ConfigError as exc:
            self._logger.error("Skipping cycle, configuration could not be loaded: %s", exc)
            return None

        self._cycle_cache.clear()

        cdn_summary = None
        if snapshot.cdn_enabled:
            cdn_summary = self.run_pass(ServiceKind.CDN, snapshot.cdn, snapshot)
        dns_summary = None
        if snapshot.dns_enabled:
            dns_summary = self.run_pass(ServiceKind.DNS, snapshot.dns, snapshot)

        for summary in (cdn_summary, dns_summary):
            if summary is None:
                continue
            counts: dict[str, int] = {}
            for status in summary.statuses.values():
                counts[status.value] = counts.get(status.value, 0) + 1
            self._logger.info(
                "%s pass completed. statuses=%s skipped=%d errors=%d webhooks=%d",
                summary.kind.value,
                counts,
                summary.skipped,
                summary.errors,
                summary.webhooks,
            )
        return CycleSummary(cdn=cdn_summary, dns=dns_summary)

    def trigger(self, full_refresh: bool = True) -> threading.Thread:
        """Run one cycle now on a background thread, e.g. after the configuration was edited."""
        if full_refresh:
            self.session.request_full_refresh()
        thread = threading.Thread(target=self.run_once, name="originsync-trigger", daemon=True)
        thread.start()
        return thread

    def run_forever(self, interval_seconds: int, stop_event: threading.Event | None = None) -> None:
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception as exc:  # noqa: BLE001
                self._logger.exception("Unexpected sync error: %s", exc)
            stop_event.wait(interval_seconds)
