from __future__ import annotations

import json
from typing import Any

from originsync.errors import RemoteAPIError
from originsync.http_client import APIClient
from originsync.ip_resolver import is_ip_address
from originsync.models import STATIC_IP_TYPES, Source, is_domain_type, root_domain
from originsync.providers.base import RemoteResource
from originsync.providers.cdn import CDNAdapter
from originsync.signers import AliyunRPCAuth

ENDPOINTS = {
    "CDN": ("https://cdn.aliyuncs.com", "2018-05-10"),
    "DCDN": ("https://dcdn.aliyuncs.com", "2018-01-15"),
    "ESA": ("https://esa.cn-hangzhou.aliyuncs.com", "2024-09-10"),
}

PRIORITY_CODES = {"main": "20", "backup": "30", "20": "20", "30": "30"}
DEFAULT_PORT = 80
DEFAULT_WEIGHT = "10"


def _int(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class AliyunCDN(CDNAdapter):
    provider_name = "aliyun"
    cdn_types = frozenset(ENDPOINTS)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: APIClient | None = None
        self._site_id = ""

    def _call(self, action: str, method: str = "GET", idempotent: bool = True, **params: str) -> dict[str, Any]:
        base_url, version = ENDPOINTS[self.service.cdn_type]
        if self._client is None:
            self._client = APIClient(
                base_url,
                AliyunRPCAuth(self.service.access_key, self.service.access_secret),
                timeout_seconds=self._timeout_seconds,
                logger=self._logger,
                session=self._session,
            )
        query = {"Action": action, "Version": version, **params}
        data = self._client.request(method, "/", params=query, idempotent=idempotent)
        self._logger.debug("[%s] %s ok, RequestId=%s", self.service_name, action, data.get("RequestId"))
        return data

    def source_type(self, source: Source, content: str) -> str:
        if source.type in STATIC_IP_TYPES or is_ip_address(content):
            return "ipaddr"
        return "domain"

    def sources_param(self) -> str:
        entries = []
        for source in self.service.sources:
            content = self.source_address(source)
            entries.append(
                {
                    "content": content,
                    "type": self.source_type(source, content),
                    "priority": PRIORITY_CODES.get(source.priority, "20"),
                    "port": _int(source.port, DEFAULT_PORT),
                    "weight": source.weight or DEFAULT_WEIGHT,
                }
            )
        return json.dumps(entries, separators=(",", ":"))

    def describe(self) -> RemoteResource | None:
        cdn_type = self.service.cdn_type
        if cdn_type == "ESA":
            return self._describe_esa()
        action = "DescribeDcdnUserDomains" if cdn_type == "DCDN" else "DescribeUserDomains"
        data = self._call(action, DomainName=self.service.domain)
        pages = (data.get("Domains") or {}).get("PageData") or []
        if not data.get("TotalCount") or not pages:
            return None
        domain = pages[0]
        return RemoteResource(
            identifier=str(domain.get("DomainName", "")),
            cname=str(domain.get("Cname", "")),
            status=str(domain.get("DomainStatus", "")),
        )

    def _describe_esa(self) -> RemoteResource | None:
        site_name = root_domain(self.service.domain)
        sites = self._call("ListSites", SiteName=site_name).get("Sites") or []
        if not sites:
            raise RemoteAPIError(f"ESA site {site_name} not found; create the site in the ESA console first")
        self._site_id = str(sites[0].get("SiteId", ""))
        data = self._call("ListRecords", RecordName=self.service.domain, SiteId=self._site_id)
        records = data.get("Records") or []
        if not data.get("TotalCount") or not records:
            return None
        record = records[0]
        return RemoteResource(
            identifier=str(record.get("RecordId", "")),
            cname=str(record.get("RecordCname", "")),
            status="online" if record.get("Proxied") else "offline",
        )

    def _esa_source_params(self) -> dict[str, str]:
        first = self.service.sources[0]
        params = {"Data": json.dumps({"Value": self.source_address(first)}, separators=(",", ":"))}
        if is_domain_type(first.type):
            params.update(Type="CNAME", SourceType="Domain")
        else:
            params["Type"] = "A/AAAA"
        return params

    def create(self) -> None:
        cdn_type = self.service.cdn_type
        domain = self.service.domain
        if cdn_type == "CDN":
            self._call("AddCdnDomain", idempotent=False, DomainName=domain, CdnType="web", Sources=self.sources_param())
        elif cdn_type == "DCDN":
            self._call("AddDcdnDomain", idempotent=False, DomainName=domain, Sources=self.sources_param())
        else:
            self._call(
                "CreateRecord",
                method="POST",
                idempotent=False,
                RecordName=domain,
                SiteId=self._site_id,
                Proxied="true",
                BizName="web",
                Ttl="1",
                **self._esa_source_params(),
            )

    def modify(self, existing: RemoteResource) -> None:
        cdn_type = self.service.cdn_type
        domain = self.service.domain
        if cdn_type == "CDN":
            self._call("ModifyCdnDomain", DomainName=domain, Sources=self.sources_param())
        elif cdn_type == "DCDN":
            self._call("UpdateDcdnDomain", DomainName=domain, Sources=self.sources_param())
        else:
            self._call("UpdateRecord", method="POST", RecordId=existing.identifier, **self._esa_source_params())
