from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Callable
from urllib.parse import parse_qsl, quote, quote_plus, urlsplit

from requests import PreparedRequest
from requests.auth import AuthBase

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_HOST = "cdn.baidubce.com"
EXPIRATION_SECONDS = 1800
SIGNED_HEADERS = "host"


def hmac_sha256_hex(key: str, message: str) -> str:
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def canonical_uri(path: str) -> str:
    if not path:
        return "/"
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def canonical_query_string(query: str) -> str:
    if not query:
        return ""
    pairs = sorted(parse_qsl(query, keep_blank_values=True))
    return "&".join(f"{quote_plus(key, safe='')}={quote_plus(value, safe='')}" for key, value in pairs)


def canonical_request(method: str, path: str, query: str, host: str) -> str:
    return "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query_string(query),
            f"host:{host}",
        ]
    )


def auth_string_prefix(access_key_id: str, timestamp: str, expiration_seconds: int = EXPIRATION_SECONDS) -> str:
    return f"bce-auth-v1/{access_key_id}/{timestamp}/{expiration_seconds}"


def authorization(
    access_key_id: str,
    secret_access_key: str,
    method: str,
    path: str,
    query: str,
    host: str,
    timestamp: str,
    expiration_seconds: int = EXPIRATION_SECONDS,
) -> str:
    prefix = auth_string_prefix(access_key_id, timestamp, expiration_seconds)
    signing_key = hmac_sha256_hex(secret_access_key, prefix)
    signature = hmac_sha256_hex(signing_key, canonical_request(method, path, query, host))
    return f"{prefix}/{SIGNED_HEADERS}/{signature}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BCEAuth(AuthBase):
    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        expiration_seconds: int = EXPIRATION_SECONDS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.expiration_seconds = expiration_seconds
        self._clock = clock

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        parts = urlsplit(request.url or "")
        host = parts.netloc or DEFAULT_HOST
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        request.headers["Authorization"] = authorization(
            self.access_key_id,
            self.secret_access_key,
            request.method or "GET",
            parts.path,
            parts.query,
            host,
            timestamp,
            self.expiration_seconds,
        )
        request.headers["x-bce-date"] = timestamp
        return request
