from __future__ import annotations

"""Zone hold detection for a hostname.

The platform API offers no read-only way to see whether another account holds
a hostname, so the check claims it: create a custom hostname on our own test
zone, and if that works, delete it again straight away. Errors returned by the
create call tell us whether someone else already owns the name. The probe is
combined with a nameserver heuristic, because a hostname delegated to the
platform's nameservers but free on our account is most likely active on a
different account.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..errors import ProbeError

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"
PLATFORM_NS_SUFFIXES = ("ns.cloudflare.com",)
HOLD_MESSAGE_MARKERS = ("another account", "zone hold", "already exists", "is active")
HOLD_ERROR_CODES = {1010}

HOLD_YES = "yes"
HOLD_NO = "no"
HOLD_LIKELY = "likely"
METHOD_API = "api"
METHOD_NS_INFERENCE = "nameserver_inference"

MISSING_CREDENTIALS = "Missing credentials"
API_ERROR = "API Error"
INFERENCE_DETAIL = "Domain uses Cloudflare nameservers - likely managed by another Cloudflare account"

logger = logging.getLogger("hostcheck")


@dataclass
class HoldStatus:
    status: str
    detail: Optional[str] = None
    verification_method: str = METHOD_API

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProbeResult:
    """Outcome of the create-then-delete probe.

    `created`/`resource_id`/`errors` describe the create call. The rollback
    fields only describe the compensating delete; callers log them and move on.
    """

    created: bool
    resource_id: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    rollback_ok: Optional[bool] = None
    rollback_error: Optional[str] = None


def is_platform_managed(nameservers: Sequence[str]) -> bool:
    for ns in nameservers or []:
        host = str(ns).strip().rstrip(".").lower()
        if any(host.endswith(suffix) for suffix in PLATFORM_NS_SUFFIXES):
            return True
    return False


def _is_hold_error(error: Dict[str, Any]) -> bool:
    message = str(error.get("message") or "").lower()
    if any(marker in message for marker in HOLD_MESSAGE_MARKERS):
        return True
    try:
        return int(error.get("code")) in HOLD_ERROR_CODES
    except (TypeError, ValueError):
        return False


class PlatformClient:
    """Minimal custom hostname client scoped to one zone of our own account."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_token: Optional[str] = None,
        zone_id: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 5.0,
    ):
        self.client = client
        self.api_token = api_token if api_token is not None else os.getenv("CLOUDFLARE_API_TOKEN")
        self.zone_id = zone_id if zone_id is not None else os.getenv("CLOUDFLARE_ZONE_ID")
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.timeout = timeout

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_token and self.zone_id)

    def _url(self, resource_id: Optional[str] = None) -> str:
        url = f"{self.api_base}/zones/{self.zone_id}/custom_hostnames"
        return f"{url}/{resource_id}" if resource_id else url

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"}

    async def create_custom_hostname(self, hostname: str) -> Tuple[bool, Dict[str, Any]]:
        body = {
            "hostname": hostname,
            "ssl": {"method": "http", "type": "dv", "settings": {"http2": "on"}},
        }
        try:
            response = await self.client.post(self._url(), json=body, headers=self._headers(), timeout=self.timeout)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProbeError(f"{exc.__class__.__name__}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProbeError(f"Unexpected API payload: {payload!r}")
        errors = payload.get("errors")
        if errors is not None and not (isinstance(errors, list) and all(isinstance(e, dict) for e in errors)):
            raise ProbeError(f"Unexpected API errors: {errors!r}")
        result = payload.get("result")
        if result is not None and not isinstance(result, dict):
            raise ProbeError(f"Unexpected API result: {result!r}")
        return response.is_success, payload

    async def delete_custom_hostname(self, resource_id: str) -> None:
        try:
            response = await self.client.delete(self._url(resource_id), headers=self._headers(), timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise ProbeError(f"{exc.__class__.__name__}: {exc}") from exc
        if not response.is_success:
            raise ProbeError(f"HTTP {response.status_code}")

    async def probe(self, hostname: str) -> ProbeResult:
        """Try to claim `hostname`; roll the claim back if it succeeded."""
        http_ok, payload = await self.create_custom_hostname(hostname)
        if not (http_ok and payload.get("success")):
            logger.info("[ZoneHold] create rejected for %s: %s", hostname, json.dumps(payload.get("errors") or []))
            return ProbeResult(created=False, errors=list(payload.get("errors") or []))

        resource_id = str((payload.get("result") or {}).get("id") or "")
        result = ProbeResult(created=True, resource_id=resource_id or None)
        if not resource_id:
            result.rollback_ok = False
            result.rollback_error = "missing resource id"
            return result
        try:
            await self.delete_custom_hostname(resource_id)
            result.rollback_ok = True
        except ProbeError as exc:
            result.rollback_ok = False
            result.rollback_error = str(exc)
        return result


def classify_probe(probe: ProbeResult) -> HoldStatus:
    if probe.created:
        return HoldStatus(HOLD_NO)
    first_message = next((str(e.get("message")) for e in probe.errors if e.get("message")), None)
    if any(_is_hold_error(e) for e in probe.errors):
        return HoldStatus(HOLD_YES, first_message)
    return HoldStatus(HOLD_NO, first_message or "Unknown error")


async def determine_hold_status(hostname: str, nameservers: Sequence[str], platform: PlatformClient) -> HoldStatus:
    if not platform.has_credentials:
        logger.warning("Missing CLOUDFLARE_API_TOKEN or CLOUDFLARE_ZONE_ID; zone hold probe skipped")
        return HoldStatus(HOLD_NO, MISSING_CREDENTIALS)

    platform_managed = is_platform_managed(nameservers)

    try:
        probe = await platform.probe(hostname)
    except ProbeError as exc:
        logger.error("Zone hold probe failed for %s: %s", hostname, exc)
        api_result = HoldStatus(HOLD_NO, API_ERROR)
    else:
        if probe.created and not probe.rollback_ok:
            logger.warning(
                "Rollback of custom hostname %s (%s) failed: %s",
                probe.resource_id or "-",
                hostname,
                probe.rollback_error,
            )
        api_result = classify_probe(probe)

    if platform_managed and api_result.status == HOLD_NO:
        return HoldStatus(HOLD_LIKELY, INFERENCE_DETAIL, METHOD_NS_INFERENCE)
    return api_result
