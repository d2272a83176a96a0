from __future__ import annotations

import re
from typing import Any

from originsync.errors import RemoteAPIError
from originsync.http_client import APIClient
from originsync.models import DNSService, host_record, is_dynamic_type, root_domain
from originsync.providers.base import Adapter, DynamicSource, require
from originsync.signers import AliyunRPCAuth

ENDPOINT = "https://alidns.aliyuncs.com"
API_VERSION = "2015-01-09"
DEFAULT_TTL = 600
RECORD_TYPES = frozenset({"A", "AAAA", "CNAME", "TXT"})
ADDRESS_RECORD_TYPES = frozenset({"A", "AAAA"})
DUPLICATE_RECORD_CODE = "DomainRecordDuplicate"

_TTL_UNITS = {"s": 1, "m": 60, "h": 3600}
_TTL_PATTERN = re.compile(r"^(\d+)([smh])$")


def parse_ttl(raw: str) -> int:
    """`AUTO`/empty -> 600, plain seconds, or a number with an s/m/h suffix; anything else -> 600."""
    value = (raw or "").strip().lower()
    if not value or value == "auto":
        return DEFAULT_TTL
    if value.isdigit():
        return int(value)
    match = _TTL_PATTERN.match(value)
    if match:
        return int(match.group(1)) * _TTL_UNITS[match.group(2)]
    return DEFAULT_TTL


class AliyunDNS(Adapter):
    kind = "DNS"
    provider_name = "alidns"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: APIClient | None = None

    @property
    def service(self) -> DNSService:
        return self._service

    @property
    def uses_address_source(self) -> bool:
        return self.service.type in ADDRESS_RECORD_TYPES and is_dynamic_type(self.service.ip_type)

    def validate(self, service: DNSService) -> None:
        require(bool(service.access_key and service.access_secret), "access key or secret is empty")
        require(bool(service.domain), "domain is empty")
        require(service.type in RECORD_TYPES, f"unsupported record type {service.type!r}")
        require(bool(service.value), "record value is empty")

    def dynamic_sources(self) -> list[DynamicSource]:
        if not self.uses_address_source:
            return []
        pattern = self.service.regex if "interface" in self.service.ip_type else ""
        return [DynamicSource(self.service.ip_type, self.service.value, pattern)]

    def record_value(self) -> str:
        sources = self.dynamic_sources()
        if sources:
            source = sources[0]
            return self.resolved_value(source.type, source.value, source.pattern)
        return self.service.value

    def _call(self, action: str, idempotent: bool = True, **params: str) -> dict[str, Any]:
        if self._client is None:
            self._client = APIClient(
                ENDPOINT,
                AliyunRPCAuth(self.service.access_key, self.service.access_secret),
                timeout_seconds=self._timeout_seconds,
                logger=self._logger,
                session=self._session,
            )
        return self._client.request(
            "GET",
            "/",
            params={"Action": action, "Version": API_VERSION, **params},
            idempotent=idempotent,
        )

    def matching_record(self, data: dict[str, Any], rr: str) -> dict[str, Any] | None:
        """`RRKeyWord` matches substrings, so keep only the record with this exact RR and type."""
        records = (data.get("DomainRecords") or {}).get("Record") or []
        for record in records:
            if str(record.get("RR", "")).lower() == rr.lower() and str(record.get("Type", "")).upper() == self.service.type:
                return record
        return None

    def converge(self) -> None:
        value = self.record_value()
        rr = host_record(self.service.domain)
        data = self._call(
            "DescribeDomainRecords",
            DomainName=root_domain(self.service.domain),
            RRKeyWord=rr,
            TypeKeyWord=self.service.type,
        )
        ttl = str(parse_ttl(self.service.ttl))

        record = self.matching_record(data, rr)
        if record is not None:
            record_id = str(record.get("RecordId", ""))
            if str(record.get("Value", "")) == value and str(record.get("TTL", "")) == ttl:
                self._logger.info("[%s] record %s already points to %s", self.service_name, record_id, value)
                return
            self._logger.info("[%s] record %s exists (value=%s), updating to %s", self.service_name, record_id, record.get("Value"), value)
            try:
                self._call("UpdateDomainRecord", RecordId=record_id, RR=rr, Type=self.service.type, Value=value, TTL=ttl)
            except RemoteAPIError as exc:
                if exc.code != DUPLICATE_RECORD_CODE:
                    raise
                self._logger.info("[%s] record %s unchanged: %s", self.service_name, record_id, exc)
            return

        self._logger.info("[%s] record not found, creating %s %s -> %s", self.service_name, self.service.type, rr, value)
        created = self._call(
            "AddDomainRecord",
            idempotent=False,
            DomainName=root_domain(self.service.domain),
            RR=rr,
            Type=self.service.type,
            Value=value,
            TTL=ttl,
        )
        self._logger.info("[%s] created record %s", self.service_name, created.get("RecordId"))
