from __future__ import annotations

import ipaddress
import logging
import re
import shutil
import subprocess
import sys
import threading

import requests
from requests.adapters import HTTPAdapter

from originsync.models import (
    DYNAMIC_IPV4_COMMAND,
    DYNAMIC_IPV4_INTERFACE,
    DYNAMIC_IPV4_URL,
    DYNAMIC_IPV6_COMMAND,
    DYNAMIC_IPV6_INTERFACE,
    DYNAMIC_IPV6_URL,
    source_identity,
)

_IPV4_OCTET = r"(25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])"
IPV4_PATTERN = re.compile(rf"({_IPV4_OCTET}\.){{3,3}}{_IPV4_OCTET}")

_V4 = r"((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3})"
_H = r"[0-9A-Fa-f]{1,4}"
IPV6_PATTERN = re.compile(
    "("
    rf"(({_H}:){{7}}({_H}|:))"
    rf"|(({_H}:){{6}}(:{_H}|{_V4}|:))"
    rf"|(({_H}:){{5}}(((:{_H}){{1,2}})|:{_V4}|:))"
    rf"|(({_H}:){{4}}(((:{_H}){{1,3}})|((:{_H})?:{_V4})|:))"
    rf"|(({_H}:){{3}}(((:{_H}){{1,4}})|((:{_H}){{0,2}}:{_V4})|:))"
    rf"|(({_H}:){{2}}(((:{_H}){{1,5}})|((:{_H}){{0,3}}:{_V4})|:))"
    rf"|(({_H}:){{1}}(((:{_H}){{1,6}})|((:{_H}){{0,4}}:{_V4})|:))"
    rf"|(:(((:{_H}){{1,7}})|((:{_H}){{0,5}}:{_V4})|:))"
    ")",
    re.ASCII,
)

MAX_RESPONSE_BODY_BYTES = 1_024_000
URL_TIMEOUT_SECONDS = 30
COMMAND_TIMEOUT_SECONDS = 60

_URL_TYPES = {DYNAMIC_IPV4_URL: False, DYNAMIC_IPV6_URL: True}
_INTERFACE_TYPES = {DYNAMIC_IPV4_INTERFACE: False, DYNAMIC_IPV6_INTERFACE: True}
_COMMAND_TYPES = {DYNAMIC_IPV4_COMMAND: False, DYNAMIC_IPV6_COMMAND: True}


class CycleCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


CYCLE_CACHE = CycleCache()


class AddressFamilyAdapter(HTTPAdapter):
    """Binds outgoing sockets to the wildcard address of one family so only that family can connect."""

    def __init__(self, ipv6: bool, **kwargs) -> None:
        self._source_address = ("::", 0) if ipv6 else ("0.0.0.0", 0)
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs) -> None:
        kwargs["source_address"] = self._source_address
        super().init_poolmanager(*args, **kwargs)


def pinned_session(ipv6: bool) -> requests.Session:
    session = requests.Session()
    session.trust_env = False
    adapter = AddressFamilyAdapter(ipv6=ipv6)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _pattern_for(ipv6: bool) -> re.Pattern[str]:
    return IPV6_PATTERN if ipv6 else IPV4_PATTERN


def _family_name(ipv6: bool) -> str:
    return "IPv6" if ipv6 else "IPv4"


def _read_limited(response: requests.Response) -> str:
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_content(chunk_size=8192):
        if not chunk:
            continue
        chunks.append(chunk)
        size += len(chunk)
        if size >= MAX_RESPONSE_BODY_BYTES:
            break
    return b"".join(chunks)[:MAX_RESPONSE_BODY_BYTES].decode("utf-8", errors="replace")


def address_from_url(
    urls: str,
    ipv6: bool,
    logger: logging.Logger | None = None,
    session: requests.Session | None = None,
    timeout_seconds: int = URL_TIMEOUT_SECONDS,
) -> str | None:
    logger = logger or logging.getLogger(__name__)
    owned = session is None
    session = session or pinned_session(ipv6)
    pattern = _pattern_for(ipv6)

    try:
        for url in (entry.strip() for entry in urls.split(",")):
            if not url:
                continue
            try:
                with session.get(url, timeout=timeout_seconds, stream=True) as response:
                    response.raise_for_status()
                    body = _read_limited(response)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed resolving %s from %s: %s", _family_name(ipv6), url, exc)
                continue
            match = pattern.search(body)
            if match:
                return match.group(0)
            logger.info("No %s address in response from %s: %.200s", _family_name(ipv6), url, body)
        return None
    finally:
        if owned:
            session.close()


def _shell_argv(command: str) -> list[str]:
    if sys.platform.startswith("win"):
        return ["powershell", "-Command", command]
    return [shutil.which("bash") or "sh", "-c", command]


def _run(argv: list[str], logger: logging.Logger) -> str | None:
    try:
        result = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("Failed running %s: %s", argv, exc)
        return None
    if result.returncode != 0:
        logger.warning("Command %s exited with %d: %.200s", argv, result.returncode, result.stdout)
        return None
    return result.stdout


def address_from_command(command: str, ipv6: bool, logger: logging.Logger | None = None) -> str | None:
    logger = logger or logging.getLogger(__name__)
    if not command.strip():
        logger.warning("Empty command, cannot resolve %s.", _family_name(ipv6))
        return None
    output = _run(_shell_argv(command), logger)
    if output is None:
        return None
    match = _pattern_for(ipv6).search(output)
    if not match:
        logger.info("No %s address in output of command: %s", _family_name(ipv6), command)
        return None
    return match.group(0)


def _interface_argv(name: str) -> list[str]:
    if sys.platform.startswith("linux") and shutil.which("ip"):
        return ["ip", "-oneline", "address", "show", "dev", name]
    return ["ifconfig", name]


def parse_interface_addresses(output: str, ipv6: bool) -> list[str]:
    """Return the addresses of one family listed in `ip -o address` or `ifconfig` output, in order."""
    keyword = "inet6" if ipv6 else "inet"
    addresses: list[str] = []
    for line in output.splitlines():
        tokens = line.split()
        for index, token in enumerate(tokens[:-1]):
            if token != keyword:
                continue
            raw = tokens[index + 1].removeprefix("addr:").split("/")[0].split("%")[0]
            try:
                parsed = ipaddress.ip_address(raw)
            except ValueError:
                continue
            if parsed.version != (6 if ipv6 else 4) or parsed.is_link_local:
                continue
            addresses.append(str(parsed))
    return addresses


def address_from_interface(
    name: str,
    ipv6: bool,
    pattern: str = "",
    logger: logging.Logger | None = None,
) -> str | None:
    logger = logger or logging.getLogger(__name__)
    output = _run(_interface_argv(name), logger)
    if output is None:
        return None
    addresses = parse_interface_addresses(output, ipv6)
    if pattern:
        try:
            matcher = re.compile(pattern)
        except re.error as exc:
            logger.warning("Invalid interface match pattern %r: %s", pattern, exc)
            return None
        addresses = [address for address in addresses if matcher.search(address)]
    if not addresses:
        logger.info("No %s address found on interface %s.", _family_name(ipv6), name)
        return None
    return addresses[0]


def resolve_address(
    source_type: str,
    value: str,
    pattern: str = "",
    cache: CycleCache | None = None,
    logger: logging.Logger | None = None,
    session: requests.Session | None = None,
) -> str | None:
    """Resolve one dynamic source, probing live only when this cycle has not seen it yet.

    Returns None on any failure; failures are never cached.
    """
    logger = logger or logging.getLogger(__name__)
    cache = cache if cache is not None else CYCLE_CACHE
    key = source_identity(source_type, value, pattern)

    cached = cache.get(key)
    if cached:
        logger.debug("Cycle cache hit for %s: %s", key, cached)
        return cached

    if source_type in _URL_TYPES:
        address = address_from_url(value, _URL_TYPES[source_type], logger=logger, session=session)
    elif source_type in _INTERFACE_TYPES:
        address = address_from_interface(value, _INTERFACE_TYPES[source_type], pattern=pattern, logger=logger)
    elif source_type in _COMMAND_TYPES:
        address = address_from_command(value, _COMMAND_TYPES[source_type], logger=logger)
    else:
        logger.warning("Unsupported dynamic source type %s.", source_type)
        return None

    if address:
        cache.set(key, address)
        return address
    return None


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_ipv6_address(value: str) -> bool:
    try:
        return ipaddress.ip_address(value).version == 6
    except ValueError:
        return False
