from __future__ import annotations

from typing import Any

from originsync.errors import RemoteAPIError
from originsync.http_client import APIClient
from originsync.models import is_domain_type, root_domain
from originsync.providers.base import RemoteResource
from originsync.providers.cdn import CDNAdapter
from originsync.signers import TC3Auth

CDN_HOST = "cdn.tencentcloudapi.com"
CDN_SERVICE = "cdn"
EDGEONE_HOST = "teo.tencentcloudapi.com"
EDGEONE_SERVICE = "teo"


def _port(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class TencentCDN(CDNAdapter):
    provider_name = "tencent"
    cdn_types = frozenset({"CDN", "EDGEONE"})

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: APIClient | None = None
        self._zone_id = ""

    @property
    def is_edgeone(self) -> bool:
        return self.service.cdn_type == "EDGEONE"

    def _call(self, action: str, body: dict[str, Any], idempotent: bool = True) -> dict[str, Any]:
        if self._client is None:
            host, service = (EDGEONE_HOST, EDGEONE_SERVICE) if self.is_edgeone else (CDN_HOST, CDN_SERVICE)
            self._client = APIClient(
                f"https://{host}",
                TC3Auth(self.service.access_key, self.service.access_secret, service),
                timeout_seconds=self._timeout_seconds,
                logger=self._logger,
                session=self._session,
            )
        data = self._client.request("POST", "/", payload=body, headers={"X-TC-Action": action}, idempotent=idempotent)
        response = data.get("Response") or {}
        self._logger.debug("[%s] %s ok, RequestId=%s", self.service_name, action, response.get("RequestId"))
        return response

    def origin(self) -> dict[str, Any]:
        sources = self.service.sources
        origins: list[str] = []
        backups: list[str] = []
        for source in sources:
            content = self.source_address(source)
            protocol = source.protocol.lower()
            if protocol in {"", "http"}:
                content = f"{content}:{source.port or '80'}"
            elif protocol == "https":
                content = f"{content}:{source.https_port or '443'}"
            if len(sources) > 1:
                content = f"{content}:{source.weight or '10'}"
            (backups if source.is_backup else origins).append(content)

        origin: dict[str, Any] = {
            "Origins": origins,
            "OriginType": "domain" if is_domain_type(sources[0].type) else "ip",
        }
        if backups:
            origin["BackupOrigins"] = backups
        return origin

    def edgeone_origin(self) -> dict[str, Any]:
        first = self.service.sources[0]
        protocol = first.protocol.upper() or "HTTP"
        return {
            "ZoneId": self._zone_id,
            "DomainName": self.service.domain,
            "OriginInfo": {"OriginType": "IP_DOMAIN", "Origin": self.source_address(first)},
            "OriginProtocol": "FOLLOW" if protocol == "AUTO" else protocol,
            "HttpOriginPort": _port(first.port, 80),
            "HttpsOriginPort": _port(first.https_port, 443),
        }

    def describe(self) -> RemoteResource | None:
        if self.is_edgeone:
            zone_name = root_domain(self.service.domain)
            zones = self._call(
                "DescribeZones",
                {"Filters": [{"Name": "zone-name", "Values": [zone_name]}]},
            ).get("Zones") or []
            if not zones:
                raise RemoteAPIError(f"EdgeOne zone {zone_name} not found; add the site in the EdgeOne console first")
            self._zone_id = str(zones[0].get("ZoneId", ""))
            return self._describe_acceleration_domain()

        response = self._call(
            "DescribeDomainsConfig",
            {"Filters": [{"Name": "domain", "Value": [self.service.domain]}]},
        )
        domains = response.get("Domains") or []
        if not response.get("TotalNumber") or not domains:
            return None
        domain = domains[0]
        return RemoteResource(
            identifier=str(domain.get("ResourceId", domain.get("Domain", ""))),
            cname=str(domain.get("Cname", "")),
            status=str(domain.get("Status", "")),
        )

    def _describe_acceleration_domain(self) -> RemoteResource | None:
        response = self._call(
            "DescribeAccelerationDomains",
            {"ZoneId": self._zone_id, "Filters": [{"Name": "domain-name", "Values": [self.service.domain]}]},
        )
        domains = response.get("AccelerationDomains") or []
        if not response.get("TotalCount") or not domains:
            return None
        domain = domains[0]
        return RemoteResource(
            identifier=str(domain.get("DomainName", "")),
            cname=str(domain.get("Cname", "")),
            status=str(domain.get("DomainStatus", "")),
        )

    def _relearn_cname(self) -> None:
        try:
            current = self._describe_acceleration_domain() if self.is_edgeone else self.describe()
        except RemoteAPIError as exc:
            self._logger.warning("[%s] reading back the CNAME failed: %s", self.service_name, exc)
            return
        if current is not None:
            self.learn_cname(current.cname)

    def create(self) -> None:
        if self.is_edgeone:
            self._call("CreateAccelerationDomain", self.edgeone_origin(), idempotent=False)
        else:
            self._call(
                "AddCdnDomain",
                {"Domain": self.service.domain, "ServiceType": "web", "Origin": self.origin()},
                idempotent=False,
            )
        self._relearn_cname()

    def modify(self, existing: RemoteResource) -> None:
        if self.is_edgeone:
            self._call("ModifyAccelerationDomain", self.edgeone_origin())
            self._relearn_cname()
            return
        self._call("UpdateDomainConfig", {"Domain": self.service.domain, "Origin": self.origin()})
