from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests
from requests.auth import AuthBase

from originsync.errors import RemoteAPIError

DEFAULT_TIMEOUT_SECONDS = 30


class _RetryableStatus(Exception):
    pass


def embedded_error(data: Any) -> tuple[str, str] | None:
    """Return (code, message) when a 2xx JSON body still reports a provider error."""
    if not isinstance(data, dict):
        return None
    response = data.get("Response")
    if isinstance(response, dict) and isinstance(response.get("Error"), dict):
        error = response["Error"]
        return str(error.get("Code", "")), str(error.get("Message", ""))
    code = data.get("code")
    if isinstance(code, str) and code:
        return code, str(data.get("message", ""))
    return None


def _error_from_body(response: requests.Response) -> tuple[str | None, str]:
    try:
        data = response.json()
    except ValueError:
        return None, response.text[:500]
    found = embedded_error(data)
    if found:
        return found
    if isinstance(data, dict) and data.get("Code"):
        return str(data["Code"]), str(data.get("Message", ""))
    return None, response.text[:500]


class APIClient:
    """One signed JSON endpoint. Raises RemoteAPIError for HTTP >= 300 or an embedded error code."""

    def __init__(
        self,
        base_url: str,
        auth: AuthBase,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
        session: requests.Session | None = None,
        retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout_seconds = timeout_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._session = session or requests.Session()
        self._retries = max(1, retries)
        self._sleep = sleep

    def request(
        self,
        method: str,
        path: str = "/",
        params: dict[str, Any] | None = None,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        idempotent: bool = True,
    ) -> dict[str, Any]:
        """Send one call. Creates pass `idempotent=False` and are never retried, since a timed-out
        create may still have succeeded remotely."""
        url = f"{self._base_url}{path}"
        attempts = self._retries if idempotent else 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=payload,
                    headers=headers,
                    auth=self._auth,
                    timeout=self._timeout_seconds,
                )
                if response.status_code == 429 or 500 <= response.status_code < 600:
                    raise _RetryableStatus(f"status {response.status_code}: {response.text[:500]}")
            except (requests.ConnectionError, requests.Timeout, _RetryableStatus) as exc:
                last_error = exc
                if attempt >= attempts:
                    break
                self._logger.warning(
                    "Request failed attempt %d/%d for %s %s: %s. Retrying in %ss.",
                    attempt,
                    attempts,
                    method,
                    url,
                    exc,
                    attempt,
                )
                self._sleep(attempt)
                continue
            except requests.RequestException as exc:
                raise RemoteAPIError(f"Request failed for {method} {url}: {exc}") from exc
            return self._decode(method, url, response)
        raise RemoteAPIError(f"Request failed for {method} {url}: {last_error}")

    def _decode(self, method: str, url: str, response: requests.Response) -> dict[str, Any]:
        if response.status_code >= 300:
            code, message = _error_from_body(response)
            raise RemoteAPIError(
                f"{method} {url} returned {response.status_code}: {code or ''} {message}".strip(),
                status_code=response.status_code,
                code=code,
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteAPIError(f"{method} {url} returned a non-JSON body: {response.text[:200]}") from exc
        found = embedded_error(data)
        if found:
            code, message = found
            raise RemoteAPIError(f"{method} {url} failed: {code}: {message}", status_code=response.status_code, code=code)
        if not isinstance(data, dict):
            return {"data": data}
        return data
