from __future__ import annotations

"""DNS-over-HTTPS client (JSON wire format).

`DoHResolver` issues one GET per (name, type) against a DoH endpoint that
speaks `application/dns-json` and returns a `DNSResponse`. Upstream failures
raise `ResolutionError`; empty answer sets are valid results.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import dns.rdatatype
import httpx

from ..errors import ResolutionError

DEFAULT_DOH_URL = "https://cloudflare-dns.com/dns-query"
DEFAULT_CACHE_TTL = 60.0

# RR types the checks consume; anything else is carried through opaquely.
CONSUMED_RR_TYPES = frozenset({dns.rdatatype.A, dns.rdatatype.NS, dns.rdatatype.CAA})

logger = logging.getLogger("hostcheck")


class RecordType(str, Enum):
    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    NS = "NS"
    CAA = "CAA"
    TXT = "TXT"


@dataclass
class DNSAnswer:
    name: str
    type: int
    ttl: int
    data: str

    @property
    def kind(self) -> Optional[dns.rdatatype.RdataType]:
        """Typed RR code for consumed record types, None for anything else."""
        try:
            rr_type = dns.rdatatype.RdataType(int(self.type))
        except ValueError:
            return None
        return rr_type if rr_type in CONSUMED_RR_TYPES else None

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "DNSAnswer":
        return cls(
            name=str(raw.get("name") or ""),
            type=int(raw.get("type") or 0),
            ttl=int(raw.get("TTL") or 0),
            data=str(raw.get("data") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DNSResponse:
    status: int
    answers: List[DNSAnswer] = field(default_factory=list)

    def data_for(self, rr_type: dns.rdatatype.RdataType) -> List[str]:
        return [a.data for a in self.answers if a.kind == rr_type]


class DoHResolver:
    """Resolve names through a DNS-over-HTTPS JSON endpoint.

    Successful responses are reused for `cache_ttl` seconds per resolver
    instance, so repeated lookups of the same (name, type) during one check
    stay off the network.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: Optional[str] = None,
        timeout: float = 5.0,
        cache_ttl: float = DEFAULT_CACHE_TTL,
    ):
        self.client = client
        self.url = url or DEFAULT_DOH_URL
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._cache: Dict[Tuple[str, str], Tuple[float, DNSResponse]] = {}

    async def resolve(self, name: str, record_type: RecordType = RecordType.A) -> DNSResponse:
        rtype = RecordType(record_type).value
        key = (name.lower().rstrip("."), rtype)
        now = time.monotonic()
        cached = self._cache.get(key)
        if cached is not None and cached[0] > now:
            return cached[1]

        try:
            response = await self.client.get(
                self.url,
                params={"name": name, "type": rtype},
                headers={"Accept": "application/dns-json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise ResolutionError(name, rtype, None, f"{exc.__class__.__name__}: {exc}") from exc

        if not response.is_success:
            raise ResolutionError(name, rtype, response.status_code, response.reason_phrase or None)

        try:
            payload = response.json()
            result = DNSResponse(
                status=int(payload.get("Status", 0)),
                answers=[DNSAnswer.from_json(item) for item in payload.get("Answer") or []],
            )
        except (ValueError, TypeError, AttributeError) as exc:
            raise ResolutionError(name, rtype, response.status_code, f"invalid DoH payload: {exc}") from exc

        logger.debug("DoH %s %s -> status=%s answers=%d", name, rtype, result.status, len(result.answers))
        if self.cache_ttl > 0:
            self._cache[key] = (now + self.cache_ttl, result)
        return result
