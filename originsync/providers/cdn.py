from __future__ import annotations

from abc import abstractmethod

from originsync.models import CDNService, Source, is_dynamic_type
from originsync.providers.base import Adapter, DynamicSource, RemoteResource, require


class CDNAdapter(Adapter):
    """Describe, then create or modify, one accelerated domain and its origin list."""

    kind = "CDN"
    cdn_types: frozenset[str] = frozenset({"CDN"})

    @property
    def service(self) -> CDNService:
        return self._service

    def validate(self, service: CDNService) -> None:
        require(bool(service.access_key and service.access_secret), "access key or secret is empty")
        require(bool(service.domain), "domain is empty")
        require(bool(service.sources), "no origin sources configured")
        require(
            service.cdn_type in self.cdn_types,
            f"unsupported cdn_type {service.cdn_type!r}, expected one of {sorted(self.cdn_types)}",
        )
        for source in service.sources:
            require(bool(source.type and source.value), f"origin source without type or value: {source}")

    def dynamic_sources(self) -> list[DynamicSource]:
        return [DynamicSource(source.type, source.value) for source in self.service.sources if is_dynamic_type(source.type)]

    def source_address(self, source: Source) -> str:
        if is_dynamic_type(source.type):
            return self.resolved_value(source.type, source.value)
        return source.value

    def converge(self) -> None:
        existing = self.describe()
        if existing is None:
            self._logger.info("[%s] %s %s not found, creating", self.service_name, self.service.cdn_type, self.service.domain)
            self.create()
            return
        self.learn_cname(existing.cname)
        self._logger.info(
            "[%s] %s %s exists (status=%s), updating origins",
            self.service_name,
            self.service.cdn_type,
            self.service.domain,
            existing.status or "-",
        )
        self.modify(existing)

    @abstractmethod
    def describe(self) -> RemoteResource | None:
        pass

    @abstractmethod
    def create(self) -> None:
        pass

    @abstractmethod
    def modify(self, existing: RemoteResource) -> None:
        pass
