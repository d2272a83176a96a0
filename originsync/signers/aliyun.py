from __future__ import annotations

import base64
import hashlib
import hmac
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from requests import PreparedRequest
from requests.auth import AuthBase

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_SIGNATURE_METHOD = "HMAC-SHA1"

_DIGESTS: dict[str, Callable] = {
    "HMAC-SHA1": hashlib.sha1,
    "HMAC-SHA256": hashlib.sha256,
    "HMAC-MD5": hashlib.md5,
}


def percent_encode(value: str) -> str:
    """RFC 3986 encoding: space becomes %20, `*` becomes %2A, `~` stays literal."""
    return quote(str(value), safe="~")


def canonical_query_string(params: Mapping[str, str] | Iterable[tuple[str, str]]) -> str:
    items = params.items() if isinstance(params, Mapping) else params
    pairs = sorted((str(key), str(value)) for key, value in items)
    return "&".join(f"{percent_encode(key)}={percent_encode(value)}" for key, value in pairs)


def string_to_sign(http_method: str, params: Mapping[str, str]) -> str:
    return f"{http_method.upper()}&{percent_encode('/')}&{percent_encode(canonical_query_string(params))}"


def compute_signature(
    http_method: str,
    params: Mapping[str, str],
    access_key_secret: str,
    signature_method: str = DEFAULT_SIGNATURE_METHOD,
) -> str:
    digest = _DIGESTS.get(signature_method.upper(), hashlib.sha1)
    mac = hmac.new(
        f"{access_key_secret}&".encode("utf-8"),
        string_to_sign(http_method, params).encode("utf-8"),
        digest,
    )
    return base64.b64encode(mac.digest()).decode("ascii")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AliyunRPCAuth(AuthBase):
    """Signs Aliyun RPC-style calls in place: public parameters and the signature go into the query.

    The caller supplies `Action`, `Version` and the action parameters as the request's query.
    """

    def __init__(
        self,
        access_key_id: str,
        access_key_secret: str,
        signature_method: str = DEFAULT_SIGNATURE_METHOD,
        response_format: str = "JSON",
        clock: Callable[[], datetime] = _utc_now,
        nonce_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.signature_method = signature_method
        self.response_format = response_format
        self._clock = clock
        self._nonce_factory = nonce_factory

    def public_params(self) -> dict[str, str]:
        return {
            "SignatureMethod": self.signature_method,
            "SignatureNonce": self._nonce_factory(),
            "AccessKeyId": self.access_key_id,
            "SignatureVersion": "1.0",
            "Timestamp": self._clock().strftime(TIMESTAMP_FORMAT),
            "Format": self.response_format,
        }

    def sign_params(self, http_method: str, params: Mapping[str, str]) -> str:
        """Return the full signed query string for `params` plus the public parameters."""
        signed = {key: value for key, value in params.items() if key != "Signature"}
        signed.update(self.public_params())
        signature = compute_signature(http_method, signed, self.access_key_secret, self.signature_method)
        return f"{canonical_query_string(signed)}&Signature={percent_encode(signature)}"

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        parts = urlsplit(request.url or "")
        params = dict(parse_qsl(parts.query, keep_blank_values=True))
        query = self.sign_params(request.method or "GET", params)
        request.url = urlunsplit((parts.scheme, parts.netloc, parts.path or "/", query, ""))
        return request
