"""Client IP helpers used to key rate limits and to log callers safely."""

from __future__ import annotations

from fastapi import Request

UNKNOWN_IP = "unknown"


def get_client_ip(request: Request, *, trust_forwarded: bool = True) -> str:
    """Extract the caller's IP address from a request.

    Resolution order: first entry of ``X-Forwarded-For``, then ``X-Real-IP``
    (both only when ``trust_forwarded``), then the socket peer address.

    Args:
        request: Incoming FastAPI request.
        trust_forwarded: Whether proxy headers may be used.

    Returns:
        The IP string, or ``"unknown"`` when none can be determined.
    """

    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_IP


def anonymize_ip(ip: str) -> str:
    """Zero the host part of an IP so logs never carry a full address.

    >>> anonymize_ip("192.168.1.100")
    '192.168.1.0'
    >>> anonymize_ip("2001:db8::ff00:42:8329")
    '2001:db8::ff00:42:0'
    """

    if not ip or ip == UNKNOWN_IP:
        return UNKNOWN_IP

    if ":" in ip:
        parts = ip.split(":")
        return ":".join(parts[:-1] + ["0"])

    parts = ip.split(".")
    if len(parts) == 4:
        return ".".join(parts[:3] + ["0"])

    return UNKNOWN_IP
