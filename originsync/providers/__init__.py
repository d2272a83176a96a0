from originsync.providers.aliyun_cdn import AliyunCDN
from originsync.providers.aliyun_dns import AliyunDNS
from originsync.providers.baidu_cdn import BaiduCDN
from originsync.providers.base import Adapter, AdapterResult, Status
from originsync.providers.registry import AdapterRegistry
from originsync.providers.tencent_cdn import TencentCDN


def default_cdn_registry() -> AdapterRegistry:
    registry = AdapterRegistry("CDN")
    registry.register("aliyun", AliyunCDN)
    registry.register("baiducloud", BaiduCDN)
    registry.register("tencent", TencentCDN)
    return registry


def default_dns_registry() -> AdapterRegistry:
    registry = AdapterRegistry("DNS")
    registry.register("alidns", AliyunDNS)
    return registry


__all__ = [
    "Adapter",
    "AdapterRegistry",
    "AdapterResult",
    "AliyunCDN",
    "AliyunDNS",
    "BaiduCDN",
    "Status",
    "TencentCDN",
    "default_cdn_registry",
    "default_dns_registry",
]
