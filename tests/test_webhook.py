import pytest
import requests

from originsync.models import Webhook
from originsync.webhook import extract_headers, has_json_prefix, replace_placeholders, send_webhook


class _Response:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.text = "ok"


class _Session:
    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.calls: list[dict] = []

    def request(self, method, url, data=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "data": data, "headers": headers})
        if self.error is not None:
            raise self.error
        return _Response(self.status_code)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Content-Type: application/json\nAuthorization: Bearer t", {"Content-Type": "application/json", "Authorization": "Bearer t"}),
        ("  X-Token :  abc  \n\n", {"X-Token": "abc"}),
        ("Content-Type: application/json: extra", {}),
        ("X-Time: 2024:01:01 10:00", {}),
        (": value\nkey: ", {"": "value", "key": ""}),
        ("no separator", {}),
        ("", {}),
    ],
)
def test_extract_headers(raw: str, expected: dict) -> None:
    assert extract_headers(raw) == expected


def test_replace_placeholders_replaces_every_occurrence() -> None:
    template = "#{serviceType}/#{serviceName}/#{serviceStatus} #{serviceType}"
    assert replace_placeholders(template, "CDN", "cdn.example.com", "UpdateSucceeded") == (
        "CDN/cdn.example.com/UpdateSucceeded CDN"
    )


def test_replace_placeholders_leaves_incomplete_markers() -> None:
    template = "#{serviceType} - #serviceName} - {serviceStatus}"
    assert replace_placeholders(template, "CDN", "x", "y") == "CDN - #serviceName} - {serviceStatus}"


def test_has_json_prefix() -> None:
    assert has_json_prefix('{"a": 1}')
    assert has_json_prefix("[1]")
    assert not has_json_prefix(' {"a": 1}')
    assert not has_json_prefix("")
    assert not has_json_prefix("a=1")


def test_empty_body_sends_get_with_escaped_url() -> None:
    session = _Session()
    conf = Webhook(enabled=True, url="https://hook.example.com/notify?msg=#{serviceName}%20#{serviceStatus}")

    assert send_webhook(conf, "CDN", "my site", "UpdateFailed", session=session) is True  # type: ignore[arg-type]

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://hook.example.com/notify?msg=my%20site%20UpdateFailed"
    assert call["data"] is None


def test_json_body_is_posted_with_json_content_type() -> None:
    session = _Session()
    conf = Webhook(
        enabled=True,
        url="https://hook.example.com",
        headers="Authorization: Bearer secret",
        request_body='{"text": "#{serviceType} #{serviceName} #{serviceStatus}"}',
    )

    assert send_webhook(conf, "DNS", "home.example.com", "UpdateSucceeded", session=session) is True  # type: ignore[arg-type]

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["data"] == b'{"text": "DNS home.example.com UpdateSucceeded"}'
    assert call["headers"] == {"Authorization": "Bearer secret", "Content-Type": "application/json"}


def test_form_body_is_posted_as_urlencoded() -> None:
    session = _Session()
    conf = Webhook(enabled=True, url="https://hook.example.com", request_body="status=#{serviceStatus}")

    send_webhook(conf, "CDN", "x", "UpdateFailed", session=session)  # type: ignore[arg-type]

    assert session.calls[0]["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    assert session.calls[0]["data"] == b"status=UpdateFailed"


def test_configured_content_type_is_kept() -> None:
    session = _Session()
    conf = Webhook(enabled=True, url="https://hook", headers="Content-Type: text/plain", request_body="{not json")

    send_webhook(conf, "CDN", "x", "UpdateFailed", session=session)  # type: ignore[arg-type]

    assert session.calls[0]["headers"]["Content-Type"] == "text/plain"
    assert session.calls[0]["method"] == "POST"


def test_failures_return_false() -> None:
    conf = Webhook(enabled=True, url="https://hook")

    assert send_webhook(conf, "CDN", "x", "UpdateFailed", session=_Session(status_code=500)) is False  # type: ignore[arg-type]
    assert send_webhook(conf, "CDN", "x", "UpdateFailed", session=_Session(error=requests.ConnectionError("down"))) is False  # type: ignore[arg-type]
    assert send_webhook(Webhook(enabled=True, url=""), "CDN", "x", "UpdateFailed", session=_Session()) is False  # type: ignore[arg-type]
