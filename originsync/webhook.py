from __future__ import annotations

import json
import logging
from urllib.parse import quote

import requests

from originsync.models import Webhook

WEBHOOK_TIMEOUT_SECONDS = 30


def has_json_prefix(body: str) -> bool:
    return body.startswith("{") or body.startswith("[")


def extract_headers(raw: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in raw.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split(":")
        if len(parts) != 2:
            continue
        headers[parts[0].strip()] = parts[1].strip()
    return headers


def replace_placeholders(template: str, service_type: str, service_name: str, service_status: str) -> str:
    return (
        template.replace("#{serviceType}", service_type)
        .replace("#{serviceName}", service_name)
        .replace("#{serviceStatus}", service_status)
    )


def send_webhook(
    conf: Webhook,
    service_type: str,
    service_name: str,
    service_status: str,
    logger: logging.Logger | None = None,
    session: requests.Session | None = None,
    timeout_seconds: int = WEBHOOK_TIMEOUT_SECONDS,
) -> bool:
    logger = logger or logging.getLogger(__name__)
    if not conf.url:
        return False
    session = session or requests.Session()

    url = replace_placeholders(conf.url, quote(service_type), quote(service_name), quote(service_status))
    headers = {
        key: replace_placeholders(value, service_type, service_name, service_status)
        for key, value in extract_headers(conf.headers).items()
    }
    body = replace_placeholders(conf.request_body, service_type, service_name, service_status)

    method = "GET"
    data: bytes | None = None
    if body:
        method = "POST"
        if has_json_prefix(body):
            try:
                json.loads(body)
            except ValueError:
                logger.warning("Webhook body looks like JSON but does not parse, sending it anyway.")
            headers.setdefault("Content-Type", "application/json")
        else:
            headers.setdefault("Content-Type", "application/x-www-form-urlencoded")
        data = body.encode("utf-8")

    try:
        response = session.request(method, url, data=data, headers=headers, timeout=timeout_seconds)
    except requests.RequestException as exc:
        logger.error("Webhook %s %s failed: %s", method, url, exc)
        return False
    if response.status_code >= 300:
        logger.error("Webhook %s %s returned %d: %.200s", method, url, response.status_code, response.text)
        return False
    logger.info("Webhook sent for %s %s (%s)", service_type, service_name, service_status)
    return True
