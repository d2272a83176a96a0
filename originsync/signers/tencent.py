from __future__ import annotations

import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Callable
from urllib.parse import parse_qsl, urlsplit

from requests import PreparedRequest
from requests.auth import AuthBase

ALGORITHM = "TC3-HMAC-SHA256"
CONTENT_TYPE = "application/json"
SIGNED_HEADERS = "content-type;host"

API_VERSIONS = {
    "cdn": "2018-06-06",
    "ecdn": "2022-09-01",
    "teo": "2022-09-01",
}
DEFAULT_API_VERSION = "2018-06-06"


def api_version(service: str) -> str:
    return API_VERSIONS.get(service, DEFAULT_API_VERSION)


def sha256_hex(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def canonical_request(method: str, path: str, query: str, host: str, payload: bytes | str) -> str:
    sorted_query = "&".join(f"{key}={value}" for key, value in sorted(parse_qsl(query, keep_blank_values=True)))
    headers = f"content-type:{CONTENT_TYPE}\nhost:{host.lower()}\n"
    return "\n".join([method.upper(), path or "/", sorted_query, headers, SIGNED_HEADERS, sha256_hex(payload)])


def string_to_sign(timestamp: int, date: str, service: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, str(timestamp), f"{date}/{service}/tc3_request", sha256_hex(canonical)])


def signature(secret_key: str, date: str, service: str, to_sign: str) -> str:
    secret_date = _hmac_sha256(f"TC3{secret_key}".encode("utf-8"), date)
    secret_service = _hmac_sha256(secret_date, service)
    secret_signing = _hmac_sha256(secret_service, "tc3_request")
    return hmac.new(secret_signing, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def _unix_now() -> int:
    return int(time.time())


class TC3Auth(AuthBase):
    """TC3-HMAC-SHA256 signing for Tencent Cloud JSON APIs. The caller sets `X-TC-Action`."""

    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        service: str,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self.secret_id = secret_id
        self.secret_key = secret_key
        self.service = service
        self._clock = clock

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        parts = urlsplit(request.url or "")
        host = parts.netloc
        timestamp = self._clock()
        date = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
        body = request.body or b""

        canonical = canonical_request(request.method or "POST", parts.path, parts.query, host, body)
        to_sign = string_to_sign(timestamp, date, self.service, canonical)
        credential_scope = f"{date}/{self.service}/tc3_request"

        request.headers["Content-Type"] = CONTENT_TYPE
        request.headers["Host"] = host
        request.headers["Authorization"] = (
            f"{ALGORITHM} Credential={self.secret_id}/{credential_scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, "
            f"Signature={signature(self.secret_key, date, self.service, to_sign)}"
        )
        request.headers["X-TC-Timestamp"] = str(timestamp)
        request.headers["X-TC-Version"] = api_version(self.service)
        return request
