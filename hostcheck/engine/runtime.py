from __future__ import annotations

"""Check orchestration for hostcheck.

This module contains the runtime used by both CLI and Python API:
- hostname validation (`normalize_hostname`, `validate_hostname`)
- the per-hostname pipeline (`HostChecker`) split into named steps
- sync/async entrypoints (`check_hostname`, `check_hostname_async`)

Step outputs are plain JSON values so `hostcheck.engine.jobs` can persist
them and skip completed steps when a job is resumed.
"""

import asyncio
import logging
import re
import sys
import threading
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import dns.rdatatype
import httpx
from dotenv import load_dotenv

from ..errors import ValidationError
from ..storage import now_ms, upsert_result
from .caa import decode_all, evaluate_authorities
from .cidr import is_known_proxy_ip
from .doh import DEFAULT_CACHE_TTL, DNSAnswer, DoHResolver, RecordType
from .nameservers import get_authoritative_nameservers, resolve_caa_answers
from .zone_hold import HoldStatus, PlatformClient, determine_hold_status

load_dotenv()

DEFAULT_TIMEOUT = 5.0
DNS_RECORD_TYPE = "A"

logger = logging.getLogger("hostcheck")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)

StepFn = Callable[[], Awaitable[Any]]
StepRunner = Callable[[str, StepFn], Awaitable[Any]]


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def normalize_hostname(hostname: str) -> Optional[str]:
    host = (hostname or "").strip().lower()
    if not host:
        return None

    host = re.sub(r"^\w+://", "", host)
    host = host.split("/", 1)[0].strip(".")
    if not host or " " in host:
        return None

    try:
        host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return None

    if len(host) > 253:
        return None
    labels = host.split(".")
    if any(not lbl or len(lbl) > 63 for lbl in labels):
        return None
    # a leading `*` label (wildcard) and `_` labels (service names) are allowed
    if labels[0] == "*" and len(labels) > 1:
        labels = labels[1:]
    if any(not re.match(r"^[a-z0-9_-]+$", lbl) or lbl.startswith("-") or lbl.endswith("-") for lbl in labels):
        return None
    return host


def validate_hostname(hostname: str) -> str:
    if not (hostname or "").strip():
        raise ValidationError("Hostname required")
    normalized = normalize_hostname(hostname)
    if not normalized:
        raise ValidationError(f"Invalid hostname: {hostname!r}")
    return normalized


@dataclass
class CheckResult:
    hostname: str
    authoritative_nameservers: List[str] = field(default_factory=list)
    is_proxied: str = "no"
    dns_record_type: str = DNS_RECORD_TYPE
    dns_result: str = ""
    ssl_google: str = "allowed"
    ssl_ssl_com: str = "allowed"
    ssl_lets_encrypt: str = "allowed"
    zone_hold_status: str = "no"
    zone_hold_detail: Optional[str] = None
    zone_hold_verification_method: str = "api"
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckResult":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


async def _direct_step(name: str, fn: StepFn) -> Any:
    return await fn()


class HostChecker:
    """Run the DNS, CAA and zone hold checks for one hostname.

    Steps run strictly in order; any exception aborts the rest and nothing
    is persisted for this run.
    """

    STEPS = ("dns-lookup", "check-proxy-ip", "get-auth-ns", "caa-check", "zone-hold-check", "save-to-db")

    def __init__(
        self,
        hostname: str,
        client: httpx.AsyncClient,
        doh_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        api_token: Optional[str] = None,
        zone_id: Optional[str] = None,
        api_base: Optional[str] = None,
        db_path: Optional[Path] = None,
        save: bool = True,
    ):
        self.hostname = validate_hostname(hostname)
        self.resolver = DoHResolver(client, url=doh_url, timeout=timeout, cache_ttl=cache_ttl)
        self.platform = PlatformClient(client, api_token=api_token, zone_id=zone_id, api_base=api_base, timeout=timeout)
        self.db_path = db_path
        self.save = save

    async def _dns_lookup(self) -> List[str]:
        response = await self.resolver.resolve(self.hostname, RecordType.A)
        return response.data_for(dns.rdatatype.A)

    async def _auth_ns(self) -> List[str]:
        return await get_authoritative_nameservers(self.resolver, self.hostname)

    async def _caa_answers(self) -> List[Dict[str, Any]]:
        answers = await resolve_caa_answers(self.resolver, self.hostname)
        return [a.to_dict() for a in answers]

    async def _zone_hold(self, nameservers: List[str]) -> Dict[str, Any]:
        status = await determine_hold_status(self.hostname, nameservers, self.platform)
        return status.to_dict()

    async def _persist(self, result: CheckResult) -> Dict[str, Any]:
        row = result.to_dict()
        if self.save:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, upsert_result, row, self.db_path)
        return row

    async def run(self, step: StepRunner = _direct_step) -> CheckResult:
        ips: List[str] = await step("dns-lookup", self._dns_lookup)

        async def _proxy() -> str:
            return "yes" if any(is_known_proxy_ip(ip) for ip in ips) else "no"

        is_proxied = await step("check-proxy-ip", _proxy)
        nameservers: List[str] = await step("get-auth-ns", self._auth_ns)
        caa_raw: List[Dict[str, Any]] = await step("caa-check", self._caa_answers)

        records = decode_all(DNSAnswer(**item) for item in caa_raw)
        verdicts = evaluate_authorities(records)

        hold = HoldStatus(**await step("zone-hold-check", lambda: self._zone_hold(nameservers)))

        result = CheckResult(
            hostname=self.hostname,
            authoritative_nameservers=list(nameservers),
            is_proxied=is_proxied,
            dns_record_type=DNS_RECORD_TYPE,
            dns_result=", ".join(ips),
            zone_hold_status=hold.status,
            zone_hold_detail=hold.detail,
            zone_hold_verification_method=hold.verification_method,
            updated_at=now_ms(),
            **verdicts,
        )
        saved = await step("save-to-db", lambda: self._persist(result))
        return CheckResult.from_dict(saved)


def _make_client(timeout: float = DEFAULT_TIMEOUT, workers: int = 10) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        http2=True,
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=max(20, workers * 4), max_keepalive_connections=max(10, workers * 2)),
    )


async def check_hostname_async(
    hostname: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
    **options: Any,
) -> CheckResult:
    timeout_value = timeout or DEFAULT_TIMEOUT
    if client is not None:
        return await HostChecker(hostname, client, timeout=timeout_value, **options).run()
    checker_hostname = validate_hostname(hostname)
    async with _make_client(timeout_value) as own_client:
        return await HostChecker(checker_hostname, own_client, timeout=timeout_value, **options).run()


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def check_hostname(hostname: str, **options: Any) -> CheckResult:
    """Public synchronous Python API entrypoint.

    Example:
    `check_hostname("example.com", api_token="...", zone_id="...")`
    """
    return _run_coro_sync(check_hostname_async(hostname, **options))
