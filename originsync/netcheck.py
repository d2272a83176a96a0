from __future__ import annotations

import ipaddress
import logging
import re
import struct
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed, wait
from typing import Callable, Sequence

from dnslib.dns import DNSError, DNSRecord

DEFAULT_DNS_SERVERS = ("223.5.5.5", "114.114.114.114", "119.29.29.29")
DNS_PORT = 53
CHECK_QUERY_NAME = "www.example.com"
QUERY_TIMEOUT_SECONDS = 1.0
SERVER_TIMEOUT_SECONDS = 2.0
OVERALL_TIMEOUT_SECONDS = 5.0

_LABEL = re.compile(r"^[A-Za-z0-9-]{1,63}$")

QueryFn = Callable[[str, int, bool, float], bool]


def is_valid_dns_server(server: str) -> bool:
    host, _port = split_host_port(server)
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    if not host or len(host) > 253:
        return False
    return all(_LABEL.match(label) for label in host.split("."))


def split_host_port(server: str) -> tuple[str, int]:
    server = server.strip()
    if server.startswith("["):
        host, _, rest = server[1:].partition("]")
        return host, int(rest[1:]) if rest.startswith(":") and rest[1:].isdigit() else DNS_PORT
    if server.count(":") == 1:
        host, port = server.split(":")
        return host, int(port) if port.isdigit() else DNS_PORT
    return server, DNS_PORT


def _is_ipv6(host: str) -> bool:
    try:
        return ipaddress.ip_address(host).version == 6
    except ValueError:
        return False


def query_dns(host: str, port: int, tcp: bool, timeout: float) -> bool:
    """Send one A query; any well-formed answer (NXDOMAIN included) proves the server is reachable."""
    query = DNSRecord.question(CHECK_QUERY_NAME)
    try:
        packet = query.send(host, port, tcp=tcp, timeout=timeout, ipv6=_is_ipv6(host))
        answer = DNSRecord.parse(packet)
    except (OSError, DNSError, struct.error):
        return False
    return answer.header.id == query.header.id


def check_dns_server(
    server: str,
    query: QueryFn = query_dns,
    timeout: float = SERVER_TIMEOUT_SECONDS,
) -> bool:
    """Reachable when either a UDP or a TCP query to the server is answered within the timeout."""
    host, port = split_host_port(server)
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="dnscheck")
    try:
        pending = {
            pool.submit(query, host, port, False, QUERY_TIMEOUT_SECONDS),
            pool.submit(query, host, port, True, QUERY_TIMEOUT_SECONDS),
        }
        while pending:
            done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                return False
            if any(future.result() for future in done):
                return True
        return False
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def select_dns_server(
    custom: str = "",
    candidates: Sequence[str] = DEFAULT_DNS_SERVERS,
    logger: logging.Logger | None = None,
    check: Callable[[str], bool] = check_dns_server,
    timeout: float = OVERALL_TIMEOUT_SECONDS,
) -> str | None:
    """Report a reachable DNS server: the custom one if given and answering, else the first candidate to answer.

    The result is informational; outbound requests keep using the system resolver.
    """
    logger = logger or logging.getLogger(__name__)
    if custom:
        if not is_valid_dns_server(custom):
            logger.warning("Invalid DNS server address: %s", custom)
            return None
        if check(custom):
            logger.info("Custom DNS server %s answers queries.", custom)
            return custom
        logger.warning("Custom DNS server %s does not answer queries.", custom)
        return None

    pool = ThreadPoolExecutor(max_workers=max(1, len(candidates)), thread_name_prefix="dnscheck")
    try:
        futures = {pool.submit(check, server): server for server in candidates}
        for future in as_completed(futures, timeout=timeout):
            if future.result():
                logger.info("Fallback DNS server %s answers queries.", futures[future])
                return futures[future]
    except FutureTimeout:
        logger.warning("No DNS server answered within %.0fs.", timeout)
        return None
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    logger.warning("None of the DNS servers %s answered queries.", ", ".join(candidates))
    return None
