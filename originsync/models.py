from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DYNAMIC_IPV4_URL = "dynamic_ipv4_url"
DYNAMIC_IPV4_INTERFACE = "dynamic_ipv4_interface"
DYNAMIC_IPV4_COMMAND = "dynamic_ipv4_command"
DYNAMIC_IPV6_URL = "dynamic_ipv6_url"
DYNAMIC_IPV6_INTERFACE = "dynamic_ipv6_interface"
DYNAMIC_IPV6_COMMAND = "dynamic_ipv6_command"

DYNAMIC_TYPES = frozenset(
    {
        DYNAMIC_IPV4_URL,
        DYNAMIC_IPV4_INTERFACE,
        DYNAMIC_IPV4_COMMAND,
        DYNAMIC_IPV6_URL,
        DYNAMIC_IPV6_INTERFACE,
        DYNAMIC_IPV6_COMMAND,
    }
)
STATIC_IP_TYPES = frozenset({"ipv4", "ipv6", "static_ipv4", "static_ipv6"})
DOMAIN_TYPES = frozenset({"domain", "cname"})

PRIORITY_MAIN = "main"
PRIORITY_BACKUP = "backup"


def is_dynamic_type(source_type: str) -> bool:
    return source_type in DYNAMIC_TYPES


def is_domain_type(source_type: str) -> bool:
    return source_type.lower() in DOMAIN_TYPES


def is_ipv6_type(source_type: str) -> bool:
    return "ipv6" in source_type


def source_identity(source_type: str, value: str, pattern: str = "") -> str:
    """Key shared by the cycle cache and the drift caches for one address source."""
    if pattern:
        return f"{source_type}:{value}:{pattern}"
    return f"{source_type}:{value}"


def root_domain(domain: str) -> str:
    if domain.startswith("*."):
        domain = domain[2:]
    parts = domain.split(".")
    if len(parts) <= 2:
        return domain
    return ".".join(parts[-2:])


def host_record(domain: str) -> str:
    if domain.startswith("*."):
        return "*"
    parts = domain.split(".")
    if len(parts) <= 2:
        return "@"
    return ".".join(parts[:-2])


def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{name} must be a mapping, got {type(value).__name__}")
    return value


def _mapping_list(value: Any, name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")
    return [_mapping(item, f"{name}[{index}]") for index, item in enumerate(value)]


@dataclass
class Source:
    type: str
    value: str
    priority: str = PRIORITY_MAIN
    weight: str = ""
    port: str = ""
    https_port: str = ""
    protocol: str = ""

    @property
    def is_backup(self) -> bool:
        return self.priority in {PRIORITY_BACKUP, "30"}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            type=_str(data.get("type")),
            value=_str(data.get("value")),
            priority=_str(data.get("priority")) or PRIORITY_MAIN,
            weight=_str(data.get("weight")),
            port=_str(data.get("port")),
            https_port=_str(data.get("https_port")),
            protocol=_str(data.get("protocol")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "priority": self.priority,
            "weight": self.weight,
            "port": self.port,
            "https_port": self.https_port,
            "protocol": self.protocol,
        }


@dataclass
class CDNService:
    id: str
    domain: str
    service: str
    access_key: str = ""
    access_secret: str = ""
    cdn_type: str = "CDN"
    name: str = ""
    cname: str = ""
    sources: list[Source] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.domain

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CDNService:
        known = {"id", "name", "domain", "service", "access_key", "access_secret", "cdn_type", "cname", "sources"}
        return cls(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            domain=_str(data.get("domain")).lower(),
            service=_str(data.get("service")).lower(),
            access_key=_str(data.get("access_key")),
            access_secret=_str(data.get("access_secret")),
            cdn_type=_str(data.get("cdn_type")).upper() or "CDN",
            cname=_str(data.get("cname")),
            sources=[Source.from_dict(item) for item in _mapping_list(data.get("sources"), "sources")],
            extra={key: value for key, value in data.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "name": self.name,
                "domain": self.domain,
                "service": self.service,
                "access_key": self.access_key,
                "access_secret": self.access_secret,
                "cdn_type": self.cdn_type,
                "cname": self.cname,
                "sources": [source.to_dict() for source in self.sources],
            }
        )
        return data


@dataclass
class DNSService:
    id: str
    domain: str
    service: str
    access_key: str = ""
    access_secret: str = ""
    type: str = "A"
    ip_type: str = "static_ipv4"
    value: str = ""
    ttl: str = "AUTO"
    regex: str = ""
    name: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.domain

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DNSService:
        known = {"id", "name", "domain", "service", "access_key", "access_secret", "ttl", "type", "ip_type", "value", "regex"}
        return cls(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            domain=_str(data.get("domain")).lower(),
            service=_str(data.get("service")).lower(),
            access_key=_str(data.get("access_key")),
            access_secret=_str(data.get("access_secret")),
            ttl=_str(data.get("ttl")) or "AUTO",
            type=_str(data.get("type")).upper() or "A",
            ip_type=_str(data.get("ip_type")) or "static_ipv4",
            value=_str(data.get("value")),
            regex=_str(data.get("regex")),
            extra={key: value for key, value in data.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "name": self.name,
                "domain": self.domain,
                "service": self.service,
                "access_key": self.access_key,
                "access_secret": self.access_secret,
                "ttl": self.ttl,
                "type": self.type,
                "ip_type": self.ip_type,
                "value": self.value,
                "regex": self.regex,
            }
        )
        return data


@dataclass(frozen=True)
class Webhook:
    enabled: bool = False
    url: str = ""
    headers: str = ""
    request_body: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Webhook:
        return cls(
            enabled=_parse_bool(data.get("enabled"), default=False),
            url=_str(data.get("url")),
            headers=str(data.get("headers") or ""),
            request_body=str(data.get("request_body") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "url": self.url,
            "headers": self.headers,
            "request_body": self.request_body,
        }


@dataclass
class Snapshot:
    cdn_enabled: bool = False
    cdn: list[CDNService] = field(default_factory=list)
    dns_enabled: bool = False
    dns: list[DNSService] = field(default_factory=list)
    webhook: Webhook = field(default_factory=Webhook)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        known = {"cdn_enabled", "cdn", "dns_enabled", "dns", "webhook"}
        return cls(
            cdn_enabled=_parse_bool(data.get("cdn_enabled"), default=False),
            cdn=[CDNService.from_dict(item) for item in _mapping_list(data.get("cdn"), "cdn")],
            dns_enabled=_parse_bool(data.get("dns_enabled"), default=False),
            dns=[DNSService.from_dict(item) for item in _mapping_list(data.get("dns"), "dns")],
            webhook=Webhook.from_dict(_mapping(data.get("webhook"), "webhook")),
            extra={key: value for key, value in data.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "cdn_enabled": self.cdn_enabled,
                "cdn": [service.to_dict() for service in self.cdn],
                "dns_enabled": self.dns_enabled,
                "dns": [service.to_dict() for service in self.dns],
                "webhook": self.webhook.to_dict(),
            }
        )
        return data
