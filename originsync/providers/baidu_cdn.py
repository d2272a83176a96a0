from __future__ import annotations

from typing import Any

from originsync.errors import RemoteAPIError
from originsync.http_client import APIClient
from originsync.ip_resolver import is_ipv6_address
from originsync.models import Source
from originsync.providers.base import RemoteResource
from originsync.providers.cdn import CDNAdapter
from originsync.signers import BCEAuth

ENDPOINT = "https://cdn.baidubce.com"
DEFAULT_PORTS = {"http": "80", "https": "443"}


def peer(protocol: str, address: str, port: str) -> str:
    protocol = (protocol or "http").lower()
    port = port or DEFAULT_PORTS.get(protocol, "80")
    if is_ipv6_address(address):
        return f"{protocol}://[{address}]:{port}"
    return f"{protocol}://{address}:{port}"


class BaiduCDN(CDNAdapter):
    provider_name = "baiducloud"
    cdn_types = frozenset({"CDN", "DCDN", "DRCDN"})

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: APIClient | None = None

    @property
    def client(self) -> APIClient:
        if self._client is None:
            self._client = APIClient(
                ENDPOINT,
                BCEAuth(self.service.access_key, self.service.access_secret),
                timeout_seconds=self._timeout_seconds,
                logger=self._logger,
                session=self._session,
            )
        return self._client

    @property
    def form(self) -> str:
        return "dynamic" if self.service.cdn_type == "DRCDN" else "default"

    def _origin_entry(self, source: Source, protocol: str, port: str) -> dict[str, Any]:
        entry: dict[str, Any] = {"peer": peer(protocol, self.source_address(source), port), "backup": source.is_backup}
        if source.weight and source.weight != "0":
            try:
                entry["weight"] = int(source.weight)
            except ValueError:
                entry["weight"] = 10
        return entry

    def origins(self) -> list[dict[str, Any]]:
        entries = []
        for source in self.service.sources:
            if source.protocol.lower() == "auto":
                entries.append(self._origin_entry(source, "http", source.port))
                entries.append(self._origin_entry(source, "https", source.https_port))
            else:
                entries.append(self._origin_entry(source, source.protocol, source.port))
        return entries

    def describe(self) -> RemoteResource | None:
        try:
            data = self.client.request("GET", f"/v2/domain/{self.service.domain}/config")
        except RemoteAPIError as exc:
            if exc.not_found:
                return None
            raise
        return RemoteResource(
            identifier=str(data.get("domain", self.service.domain)),
            cname=str(data.get("cname", "")),
            status=str(data.get("status", "")),
        )

    def create(self) -> None:
        body: dict[str, Any] = {"origin": self.origins(), "form": self.form}
        if self.service.cdn_type == "DRCDN":
            body["productType"] = 1
            body["dsa"] = {"enabled": True}
        self.client.request("PUT", f"/v2/domain/{self.service.domain}", payload=body, idempotent=False)

        try:
            created = self.describe()
        except RemoteAPIError as exc:
            self._logger.warning("[%s] created, but reading back the CNAME failed: %s", self.service_name, exc)
            return
        if created is not None:
            self.learn_cname(created.cname)

    def modify(self, existing: RemoteResource) -> None:
        body = {"origin": self.origins(), "form": self.form}
        self.client.request("PUT", f"/v2/domain/{self.service.domain}/config?origin", payload=body)
