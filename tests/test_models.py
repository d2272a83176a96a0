from originsync.models import (
    CDNService,
    DNSService,
    Snapshot,
    Source,
    host_record,
    root_domain,
    source_identity,
)


def test_root_domain_and_host_record() -> None:
    assert root_domain("www.example.com") == "example.com"
    assert host_record("www.example.com") == "www"
    assert root_domain("a.b.example.com") == "example.com"
    assert host_record("a.b.example.com") == "a.b"
    assert root_domain("example.com") == "example.com"
    assert host_record("example.com") == "@"
    assert root_domain("*.example.com") == "example.com"
    assert host_record("*.example.com") == "*"


def test_source_identity_includes_pattern_only_when_set() -> None:
    assert source_identity("dynamic_ipv6_interface", "eth0") == "dynamic_ipv6_interface:eth0"
    assert source_identity("dynamic_ipv6_interface", "eth0", "^240") == "dynamic_ipv6_interface:eth0:^240"


def test_cdn_service_normalizes_fields_and_keeps_unknown_keys() -> None:
    service = CDNService.from_dict(
        {
            "id": "svc-1",
            "domain": "CDN.Example.COM",
            "service": "Aliyun",
            "cdn_type": "dcdn",
            "sources": [{"type": "dynamic_ipv4_url", "value": "https://ip.example", "priority": "backup", "port": 8080}],
            "note": "kept",
        }
    )

    assert service.domain == "cdn.example.com"
    assert service.service == "aliyun"
    assert service.cdn_type == "DCDN"
    assert service.sources[0].port == "8080"
    assert service.sources[0].is_backup
    assert service.display_name == "cdn.example.com"
    assert service.to_dict()["note"] == "kept"


def test_dns_service_defaults() -> None:
    service = DNSService.from_dict({"domain": "home.example.com", "service": "alidns", "value": "1.2.3.4"})

    assert service.type == "A"
    assert service.ip_type == "static_ipv4"
    assert service.ttl == "AUTO"


def test_snapshot_round_trip_preserves_learned_cname_and_extras() -> None:
    data = {
        "cdn_enabled": True,
        "cdn": [{"id": "c1", "domain": "cdn.example.com", "service": "tencent", "sources": []}],
        "dns_enabled": False,
        "dns": [],
        "webhook": {"enabled": True, "url": "https://hook"},
        "theme": "dark",
    }
    snapshot = Snapshot.from_dict(data)
    snapshot.cdn[0].cname = "cdn.example.com.cdn.dnsv1.com"

    dumped = snapshot.to_dict()
    reloaded = Snapshot.from_dict(dumped)

    assert dumped["theme"] == "dark"
    assert reloaded.cdn[0].cname == "cdn.example.com.cdn.dnsv1.com"
    assert reloaded.webhook.enabled
    assert reloaded.webhook.url == "https://hook"


def test_source_priority_defaults_to_main() -> None:
    source = Source.from_dict({"type": "ipv4", "value": "192.0.2.1"})
    assert source.priority == "main"
    assert not source.is_backup
