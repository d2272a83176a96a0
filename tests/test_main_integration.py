import json
from pathlib import Path

import requests
import yaml

from originsync.main import main


class _Response:
    def __init__(self, payload) -> None:
        self.status_code = 200
        self.text = json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


def test_once_reconciles_dns_record_end_to_end(monkeypatch, tmp_path: Path) -> None:
    config_file = tmp_path / "originsync.yaml"
    config_file.write_text(
        """
cdn_enabled: false
dns_enabled: true
dns:
  - id: home
    domain: home.example.com
    service: alidns
    access_key: ak
    access_secret: sk
    type: A
    ip_type: static_ipv4
    value: 192.0.2.44
webhook:
  enabled: false
""",
        encoding="utf-8",
    )
    calls: list[dict] = []

    def fake_request(self, method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        if kwargs["params"]["Action"] == "DescribeDomainRecords":
            return _Response({"TotalCount": 0, "DomainRecords": {"Record": []}})
        return _Response({"RecordId": "1001", "RequestId": "r"})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    monkeypatch.setattr("originsync.main.select_dns_server", lambda **kwargs: None)
    monkeypatch.delenv("SYNC_INTERVAL_SECONDS", raising=False)
    monkeypatch.delenv("REQUEST_TIMEOUT_SECONDS", raising=False)

    assert main(["--once", "--config", str(config_file)]) == 0

    actions = [call["params"]["Action"] for call in calls]
    assert actions == ["DescribeDomainRecords", "AddDomainRecord"]
    assert calls[1]["params"]["Value"] == "192.0.2.44"
    assert calls[1]["url"] == "https://alidns.aliyuncs.com/"
    assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["dns"][0]["value"] == "192.0.2.44"


def test_once_with_missing_config_reports_failure(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("originsync.main.select_dns_server", lambda **kwargs: None)

    assert main(["--once", "--config", str(tmp_path / "absent.yaml")]) == 1


def test_invalid_interval_is_a_configuration_error(tmp_path: Path) -> None:
    assert main(["--once", "--interval", "0", "--config", str(tmp_path / "c.yaml")]) == 2
