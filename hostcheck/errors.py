"""Exception types raised by the hostcheck engine."""

from __future__ import annotations

from typing import Optional


class HostCheckError(Exception):
    """Base class for hostcheck failures."""


class ValidationError(HostCheckError):
    """Hostname input is empty or not a valid domain name."""


class ResolutionError(HostCheckError):
    """DNS-over-HTTPS query did not complete with a success status.

    Fatal to the whole check. `status` is the upstream HTTP status, or None
    when the transport itself failed.
    """

    def __init__(self, hostname: str, record_type: str, status: Optional[int] = None, reason: Optional[str] = None):
        self.hostname = hostname
        self.record_type = record_type
        self.status = status
        self.reason = reason
        detail = reason or (f"HTTP {status}" if status is not None else "transport error")
        super().__init__(f"DNS query failed for {hostname} ({record_type}): {detail}")


class ProbeError(HostCheckError):
    """Platform API call failed at the transport or payload level."""
