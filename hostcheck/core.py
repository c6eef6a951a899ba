from __future__ import annotations

"""Compatibility facade for the hostcheck engine.

Public imports remain stable while implementation lives in `hostcheck.engine`.
"""

from .engine.caa import AUTHORITIES, ParsedCAA, decode_caa, evaluate_authorities, is_authority_permitted
from .engine.cidr import PROXY_IPV4_RANGES, is_known_proxy_ip
from .engine.doh import DNSAnswer, DNSResponse, DoHResolver, RecordType
from .engine.jobs import JobRunner, _run_async, run_job_async, submit_check
from .engine.nameservers import get_authoritative_nameservers, parent_domain, resolve_caa_answers
from .engine.runtime import (
    CheckResult,
    HostChecker,
    _run_coro_sync,
    check_hostname,
    check_hostname_async,
    fmt_td,
    logger,
    normalize_hostname,
    validate_hostname,
)
from .engine.zone_hold import HoldStatus, PlatformClient, determine_hold_status, is_platform_managed

__all__ = [
    "AUTHORITIES",
    "PROXY_IPV4_RANGES",
    "CheckResult",
    "DNSAnswer",
    "DNSResponse",
    "DoHResolver",
    "HoldStatus",
    "HostChecker",
    "JobRunner",
    "ParsedCAA",
    "PlatformClient",
    "RecordType",
    "check_hostname",
    "check_hostname_async",
    "decode_caa",
    "determine_hold_status",
    "evaluate_authorities",
    "fmt_td",
    "get_authoritative_nameservers",
    "is_authority_permitted",
    "is_known_proxy_ip",
    "is_platform_managed",
    "logger",
    "normalize_hostname",
    "parent_domain",
    "resolve_caa_answers",
    "run_job_async",
    "submit_check",
    "validate_hostname",
    "_run_async",
    "_run_coro_sync",
]
