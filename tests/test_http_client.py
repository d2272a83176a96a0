import json

import pytest
import requests
from requests.auth import AuthBase

from originsync.errors import RemoteAPIError
from originsync.http_client import APIClient, embedded_error


class _Response:
    def __init__(self, status_code: int = 200, payload=None, text: str | None = None) -> None:
        self.status_code = status_code
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class _Session:
    def __init__(self, responses) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class _NoAuth(AuthBase):
    def __call__(self, request):
        return request


def _client(session: _Session, sleeps: list) -> APIClient:
    return APIClient("https://api.example.com/", _NoAuth(), session=session, sleep=sleeps.append)  # type: ignore[arg-type]


def test_request_retries_transient_failures() -> None:
    session = _Session(
        [
            requests.ConnectionError("reset"),
            _Response(503, text="busy"),
            _Response(200, {"Domains": []}),
        ]
    )
    sleeps: list = []

    data = _client(session, sleeps).request("GET", "/", params={"Action": "DescribeUserDomains"})

    assert data == {"Domains": []}
    assert sleeps == [1, 2]
    assert session.calls[0]["url"] == "https://api.example.com/"
    assert session.calls[0]["params"] == {"Action": "DescribeUserDomains"}


def test_request_gives_up_after_last_retry() -> None:
    session = _Session([_Response(500, text="down")] * 3)

    with pytest.raises(RemoteAPIError):
        _client(session, []).request("GET")
    assert len(session.calls) == 3


def test_non_idempotent_request_is_sent_once() -> None:
    session = _Session([_Response(503, text="busy"), _Response(200, {"RequestId": "r"})])
    sleeps: list = []

    with pytest.raises(RemoteAPIError):
        _client(session, sleeps).request("GET", params={"Action": "AddCdnDomain"}, idempotent=False)

    assert len(session.calls) == 1
    assert sleeps == []
    assert "idempotent" not in session.calls[0]


def test_client_error_carries_status_and_code() -> None:
    session = _Session([_Response(404, {"Code": "InvalidDomain.NotFound", "Message": "missing"})])

    with pytest.raises(RemoteAPIError) as excinfo:
        _client(session, []).request("GET")

    assert excinfo.value.status_code == 404
    assert excinfo.value.code == "InvalidDomain.NotFound"
    assert excinfo.value.not_found


def test_embedded_tencent_error_in_2xx_body_raises() -> None:
    body = {"Response": {"Error": {"Code": "AuthFailure.SignatureFailure", "Message": "bad sig"}, "RequestId": "r"}}
    session = _Session([_Response(200, body)])

    with pytest.raises(RemoteAPIError) as excinfo:
        _client(session, []).request("POST", payload={})

    assert excinfo.value.code == "AuthFailure.SignatureFailure"
    assert not excinfo.value.not_found


def test_empty_and_non_object_bodies() -> None:
    session = _Session([_Response(200, text=""), _Response(200, [1, 2])])
    client = _client(session, [])

    assert client.request("PUT", "/v2/domain/a.example.com") == {}
    assert client.request("GET") == {"data": [1, 2]}


def test_non_json_body_raises() -> None:
    session = _Session([_Response(200, text="<html>")])

    with pytest.raises(RemoteAPIError):
        _client(session, []).request("GET")


def test_embedded_error_detection() -> None:
    assert embedded_error({"code": "NoSuchDomain", "message": "gone"}) == ("NoSuchDomain", "gone")
    assert embedded_error({"Response": {"RequestId": "r"}}) is None
    assert embedded_error({"code": 0}) is None
    assert embedded_error([]) is None
