"""Task callbacks — best-effort POST to a caller-supplied URL on completion.

Learn: The URL comes from an untrusted request body, so it is checked
before we connect anywhere (SSRF guard):
1. Scheme must be http or https
2. Hostname must not be localhost or a cloud metadata name
3. If the host is an IP literal (shorthand IPv4 included), it must be a
   public unicast address

A rejected URL is logged and noted on the task; a delivery failure is
logged and swallowed. Neither changes the task's outcome.
"""

import ipaddress
import socket
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx
import structlog

from hivemind.models import SpecialistResult, Task
from hivemind.specialists.formatting import format_result_for_callback

logger = structlog.get_logger()

BLOCKED_HOSTNAMES = frozenset(
    {"localhost", "localhost.localdomain", "metadata.google.internal", "metadata"}
)


class CallbackUrlError(ValueError):
    """Raised when a callback URL fails the SSRF checks."""


def _parse_ip(host: str) -> Optional[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    """The address a host literal denotes, or None for a DNS name.

    Resolvers also accept shorthand IPv4 ("127.1", "2130706433",
    "0x7f000001"), so those are normalized the way inet_aton reads them.
    """
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    try:
        packed = socket.inet_aton(host)
    except OSError:
        return None
    return ipaddress.IPv4Address(packed)


def validate_callback_url(url: str) -> str:
    """Return the URL unchanged if it is safe to call, else raise CallbackUrlError."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as e:
        raise CallbackUrlError(f"Malformed callback URL: {e}") from e

    if parts.scheme not in ("http", "https"):
        raise CallbackUrlError(f"Unsupported callback scheme: {parts.scheme or 'none'}")
    if not hostname:
        raise CallbackUrlError("Callback URL has no host")

    host = hostname.lower().rstrip(".")
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        raise CallbackUrlError(f"Blocked callback host: {host}")

    ip = _parse_ip(host)
    if ip is None:
        return url

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
    ):
        raise CallbackUrlError(f"Blocked callback address: {ip}")
    return url


def is_safe_callback_url(url: str) -> bool:
    try:
        validate_callback_url(url)
    except CallbackUrlError:
        return False
    return True


def build_callback_payload(task: Task, result: Optional[SpecialistResult]) -> dict[str, Any]:
    return {
        "taskId": task.id,
        "status": task.status.value,
        "specialist": task.specialist,
        "result": format_result_for_callback(result) if result else None,
        "messages": [m.to_wire() for m in task.messages],
    }


class CallbackNotifier:
    """Sends completion callbacks over HTTP."""

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def notify(self, url: str, payload: dict[str, Any]) -> bool:
        """POST the payload. Returns whether the receiver acknowledged it."""
        try:
            r = await self._client.post(url, json=payload)
            r.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("callbacks.delivery_failed", url=url, error=str(e))
            return False
        logger.info("callbacks.delivered", url=url, status_code=r.status_code)
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
