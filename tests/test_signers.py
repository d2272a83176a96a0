import hashlib
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

from originsync.signers import AliyunRPCAuth, BCEAuth, TC3Auth
from originsync.signers import aliyun, baidu, tencent

ALIYUN_PARAMS = {
    "AccessKeyId": "testid",
    "Action": "DescribeRegions",
    "Format": "XML",
    "SignatureMethod": "HMAC-SHA1",
    "SignatureNonce": "3ee8c1b8-83d3-44af-a94f-4e0ad82fd6cf",
    "SignatureVersion": "1.0",
    "Timestamp": "2016-02-23T12:46:24Z",
    "Version": "2014-05-26",
}


def _fixed_aliyun_auth() -> AliyunRPCAuth:
    return AliyunRPCAuth(
        "testid",
        "testsecret",
        response_format="XML",
        clock=lambda: datetime(2016, 2, 23, 12, 46, 24, tzinfo=timezone.utc),
        nonce_factory=lambda: "3ee8c1b8-83d3-44af-a94f-4e0ad82fd6cf",
    )


def test_aliyun_string_to_sign_matches_documented_example() -> None:
    assert aliyun.string_to_sign("GET", ALIYUN_PARAMS) == (
        "GET&%2F&AccessKeyId%3Dtestid%26Action%3DDescribeRegions%26Format%3DXML"
        "%26SignatureMethod%3DHMAC-SHA1%26SignatureNonce%3D3ee8c1b8-83d3-44af-a94f-4e0ad82fd6cf"
        "%26SignatureVersion%3D1.0%26Timestamp%3D2016-02-23T12%253A46%253A24Z%26Version%3D2014-05-26"
    )


def test_aliyun_signature_matches_documented_example() -> None:
    assert aliyun.compute_signature("GET", ALIYUN_PARAMS, "testsecret") == "OLeaidS1JvxuMvnyHOwuJ+uX5qY="


def test_aliyun_canonical_string_ignores_insertion_order() -> None:
    reversed_params = dict(reversed(list(ALIYUN_PARAMS.items())))
    assert aliyun.canonical_query_string(reversed_params) == aliyun.canonical_query_string(ALIYUN_PARAMS)


def test_aliyun_signature_depends_on_secret_method_and_params() -> None:
    base = aliyun.compute_signature("GET", ALIYUN_PARAMS, "testsecret")

    assert aliyun.compute_signature("GET", ALIYUN_PARAMS, "othersecret") != base
    assert aliyun.compute_signature("POST", ALIYUN_PARAMS, "testsecret") != base
    assert aliyun.compute_signature("GET", {**ALIYUN_PARAMS, "RegionId": "cn-hangzhou"}, "testsecret") != base
    assert aliyun.compute_signature("GET", ALIYUN_PARAMS, "testsecret", "HMAC-SHA256") != base


def test_aliyun_percent_encoding() -> None:
    assert aliyun.percent_encode("a b*c~d/e") == "a%20b%2Ac~d%2Fe"
    assert aliyun.percent_encode("测") == "%E6%B5%8B"


def test_aliyun_sign_params_reproduces_documented_signature() -> None:
    query = _fixed_aliyun_auth().sign_params("GET", {"Action": "DescribeRegions", "Version": "2014-05-26"})
    assert query.endswith("&Signature=OLeaidS1JvxuMvnyHOwuJ%2BuX5qY%3D")
    assert query.startswith("AccessKeyId=testid&Action=DescribeRegions&Format=XML")


def test_aliyun_auth_rewrites_prepared_request_query() -> None:
    prepared = requests.Request(
        "GET",
        "https://cdn.aliyuncs.com/",
        params={"Action": "DescribeRegions", "Version": "2014-05-26"},
    ).prepare()

    signed = _fixed_aliyun_auth()(prepared)

    params = dict(parse_qsl(urlsplit(signed.url).query))
    assert params["Signature"] == "OLeaidS1JvxuMvnyHOwuJ+uX5qY="
    assert params["AccessKeyId"] == "testid"
    assert urlsplit(signed.url).netloc == "cdn.aliyuncs.com"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("name=test value&key=abc+def", "key=abc+def&name=test+value"),
        ("tag=tag2&tag=tag1&name=test", "name=test&tag=tag1&tag=tag2"),
        ("key=&name=test", "key=&name=test"),
        ("name=测试", "name=%E6%B5%8B%E8%AF%95"),
        ("", ""),
        ("type=cdn&action=query", "action=query&type=cdn"),
    ],
)
def test_baidu_canonical_query_string(raw: str, expected: str) -> None:
    assert baidu.canonical_query_string(raw) == expected


def test_baidu_canonical_query_string_is_idempotent() -> None:
    once = baidu.canonical_query_string("tag=b c&tag=a+d&name=测试&empty=")
    assert baidu.canonical_query_string(once) == once


def test_baidu_canonical_request_layout() -> None:
    assert baidu.canonical_request("put", "/v2/domain/www.example.com/config", "origin", "cdn.baidubce.com") == (
        "PUT\n/v2/domain/www.example.com/config\norigin=\nhost:cdn.baidubce.com"
    )
    assert baidu.canonical_uri("") == "/"


def test_baidu_authorization_structure_and_determinism() -> None:
    args = ("ak", "sk", "GET", "/v2/domain/a.example.com/config", "", "cdn.baidubce.com", "2024-01-01T00:00:00Z")
    first = baidu.authorization(*args)
    second = baidu.authorization(*args)

    prefix, signed_headers, signature = first.rsplit("/", 2)
    assert first == second
    assert prefix == "bce-auth-v1/ak/2024-01-01T00:00:00Z/1800"
    assert signed_headers == "host"
    assert len(signature) == 64
    assert baidu.authorization("ak", "other", *args[2:]) != first


def test_baidu_auth_sets_headers() -> None:
    prepared = requests.Request("GET", "https://cdn.baidubce.com/v2/domain/a.example.com/config").prepare()
    auth = BCEAuth("ak", "sk", clock=lambda: datetime(2024, 1, 1, tzinfo=timezone.utc))

    signed = auth(prepared)

    assert signed.headers["x-bce-date"] == "2024-01-01T00:00:00Z"
    assert signed.headers["Authorization"] == baidu.authorization(
        "ak", "sk", "GET", "/v2/domain/a.example.com/config", "", "cdn.baidubce.com", "2024-01-01T00:00:00Z"
    )


def test_tencent_canonical_request_layout() -> None:
    payload = b'{"Limit":1}'
    assert tencent.canonical_request("POST", "/", "", "CDN.tencentcloudapi.com", payload) == (
        "POST\n/\n\ncontent-type:application/json\nhost:cdn.tencentcloudapi.com\n\ncontent-type;host\n"
        + hashlib.sha256(payload).hexdigest()
    )


def test_tencent_string_to_sign_scope() -> None:
    to_sign = tencent.string_to_sign(1551113065, "2019-02-25", "cdn", "canonical")
    lines = to_sign.split("\n")
    assert lines[:3] == ["TC3-HMAC-SHA256", "1551113065", "2019-02-25/cdn/tc3_request"]
    assert lines[3] == hashlib.sha256(b"canonical").hexdigest()


def test_tencent_auth_headers_are_deterministic() -> None:
    def sign(body: bytes) -> requests.PreparedRequest:
        prepared = requests.Request("POST", "https://cdn.tencentcloudapi.com/", data=body).prepare()
        return TC3Auth("AKIDEXAMPLE", "secret", "cdn", clock=lambda: 1551113065)(prepared)

    first = sign(b'{"Limit":1}')
    second = sign(b'{"Limit":1}')
    third = sign(b'{"Limit":2}')

    assert first.headers["Authorization"] == second.headers["Authorization"]
    assert first.headers["Authorization"] != third.headers["Authorization"]
    assert first.headers["Authorization"].startswith(
        "TC3-HMAC-SHA256 Credential=AKIDEXAMPLE/2019-02-25/cdn/tc3_request, SignedHeaders=content-type;host, Signature="
    )
    assert first.headers["X-TC-Timestamp"] == "1551113065"
    assert first.headers["X-TC-Version"] == "2018-06-06"
    assert first.headers["Host"] == "cdn.tencentcloudapi.com"


def test_tencent_api_versions() -> None:
    assert tencent.api_version("teo") == "2022-09-01"
    assert tencent.api_version("ecdn") == "2022-09-01"
    assert tencent.api_version("unknown") == "2018-06-06"
