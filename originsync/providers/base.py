from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import requests

from originsync.drift import DriftCache
from originsync.errors import AddressResolutionError, RemoteAPIError, ValidationError
from originsync.http_client import DEFAULT_TIMEOUT_SECONDS
from originsync.ip_resolver import CycleCache, resolve_address
from originsync.models import source_identity


class Status(str, enum.Enum):
    INIT_FAILED = "InitFailed"
    INIT_SUCCESS = "InitSuccess"
    ADDRESS_RESOLUTION_FAILED = "AddressResolutionFailed"
    NOTHING_CHANGED = "NothingChanged"
    UPDATE_FAILED = "UpdateFailed"
    UPDATE_SUCCEEDED = "UpdateSucceeded"


@dataclass(frozen=True)
class AdapterResult:
    status: Status
    config_changed: bool = False
    cname: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in {Status.INIT_SUCCESS, Status.NOTHING_CHANGED, Status.UPDATE_SUCCEEDED}


@dataclass(frozen=True)
class DynamicSource:
    type: str
    value: str
    pattern: str = ""

    @property
    def identity(self) -> str:
        return source_identity(self.type, self.value, self.pattern)


@dataclass(frozen=True)
class RemoteResource:
    identifier: str = ""
    cname: str = ""
    status: str = ""


Resolver = Callable[..., "str | None"]


class Adapter(ABC):
    """Converges one configured service at one provider.

    Instances are built per service per cycle; `run` is the whole Init + UpdateOrCreate sequence.
    """

    kind = ""
    provider_name = ""

    def __init__(
        self,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        resolver: Resolver = resolve_address,
        cycle_cache: CycleCache | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger(__name__)
        self._timeout_seconds = timeout_seconds
        self._resolver = resolver
        self._cycle_cache = cycle_cache
        self._status = Status.INIT_FAILED
        self._config_changed = False
        self._message = ""
        self._resolved: dict[str, str] = {}
        self._service: Any = None
        self._drift: DriftCache | None = None

    @property
    def status(self) -> Status:
        return self._status

    @property
    def config_changed(self) -> bool:
        return self._config_changed

    @property
    def service_name(self) -> str:
        if self._service is None:
            return ""
        return self._service.display_name

    def result(self) -> AdapterResult:
        cname = getattr(self._service, "cname", "") if self._service is not None else ""
        return AdapterResult(
            status=self._status,
            config_changed=self._config_changed,
            cname=cname or "",
            message=self._message,
        )

    def init(self, service: Any, drift: DriftCache) -> AdapterResult:
        self._service = service
        self._drift = drift
        self._config_changed = False
        self._resolved = {}
        try:
            self.validate(service)
        except ValidationError as exc:
            self._status = Status.INIT_FAILED
            self._message = str(exc)
            self._logger.error("%s %s init failed for %s: %s", self.provider_name, self.kind, service.domain or "?", exc)
            return self.result()
        self._status = Status.INIT_SUCCESS
        self._message = ""
        self._logger.debug("%s %s initialised for %s", self.provider_name, self.kind, service.domain)
        return self.result()

    def update_or_create(self) -> AdapterResult:
        if self._status is not Status.INIT_SUCCESS or self._drift is None:
            return self.result()

        try:
            resolved = self._resolve_dynamic_sources()
        except AddressResolutionError as exc:
            self._status = Status.ADDRESS_RESOLUTION_FAILED
            self._message = str(exc)
            self._logger.error("[%s] %s", self.service_name, exc)
            return self.result()

        evaluation = self._drift.evaluate(resolved)
        if not evaluation.decision.should_update:
            self._status = Status.NOTHING_CHANGED
            self._message = ""
            self._logger.debug("[%s] no change, %d cycle(s) until forced refresh", self.service_name, self._drift.times)
            return self.result()

        for key, (old, new) in evaluation.changed.items():
            self._logger.info("[%s] %s changed: %s -> %s", self.service_name, key, old or "-", new)
        self._logger.info("[%s] updating (%s)", self.service_name, evaluation.decision.value)

        try:
            self.converge()
        except (RemoteAPIError, ValidationError) as exc:
            self._status = Status.UPDATE_FAILED
            self._message = str(exc)
            self._logger.error("[%s] update failed: %s", self.service_name, exc)
        else:
            self._status = Status.UPDATE_SUCCEEDED
            self._message = ""
            self._logger.info("[%s] update succeeded", self.service_name)
        finally:
            self._drift.reset_times()
        return self.result()

    def run(self, service: Any, drift: DriftCache) -> AdapterResult:
        result = self.init(service, drift)
        if result.status is Status.INIT_FAILED:
            return result
        return self.update_or_create()

    def should_send_webhook(self) -> bool:
        if self._drift is None:
            return False
        if self._status is Status.UPDATE_SUCCEEDED:
            return self._drift.record_success()
        if self._status is Status.UPDATE_FAILED:
            return self._drift.record_failure()
        return False

    def _resolve_dynamic_sources(self) -> dict[str, str]:
        resolved: dict[str, str] = {}
        for source in self.dynamic_sources():
            if source.identity in resolved:
                continue
            address = self._resolver(
                source.type,
                source.value,
                source.pattern,
                cache=self._cycle_cache,
                logger=self._logger,
            )
            if not address:
                raise AddressResolutionError(f"could not resolve {source.type} source {source.value!r}")
            resolved[source.identity] = address
        self._resolved = resolved
        return resolved

    def resolved_value(self, source_type: str, value: str, pattern: str = "") -> str:
        return self._resolved.get(source_identity(source_type, value, pattern), value)

    def learn_cname(self, cname: str) -> None:
        if cname and cname != self._service.cname:
            self._logger.info("[%s] CNAME changed: %s -> %s", self.service_name, self._service.cname or "-", cname)
            self._service.cname = cname
            self._config_changed = True

    @abstractmethod
    def validate(self, service: Any) -> None:
        """Raise ValidationError when the service cannot be reconciled."""

    @abstractmethod
    def dynamic_sources(self) -> list[DynamicSource]:
        pass

    @abstractmethod
    def converge(self) -> None:
        """Push the desired state to the provider; raise RemoteAPIError on failure."""


def require(condition: bool, message: str) -> None:
    if not condition:
        raise ValidationError(message)
