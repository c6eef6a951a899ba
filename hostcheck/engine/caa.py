from __future__ import annotations

"""CAA record decoding and issuance policy evaluation."""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import dns.rdatatype

from .doh import DNSAnswer

logger = logging.getLogger("hostcheck")

CAA_TEXT_RE = re.compile(r'^(\d+)\s+(\w+)\s+(?:"(.*)"|(.*))$')
HEX_PAIR_RE = re.compile(r"^(?:[0-9A-Fa-f]{2})*$")
GENERIC_RDATA_MARKER = "\\#"

ALLOWED = "allowed"
NOT_ALLOWED = "not_allowed"

# Result field -> authority identifier matched against issue/issuewild values.
AUTHORITIES: Dict[str, str] = {
    "ssl_google": "pki.goog",
    "ssl_ssl_com": "ssl.com",
    "ssl_lets_encrypt": "letsencrypt.org",
}


@dataclass(frozen=True)
class ParsedCAA:
    critical: bool
    tag: str
    value: str


def _decode_generic(data: str) -> Optional[ParsedCAA]:
    # RFC 3597 form: \# <length> <hex> <hex> ...
    parts = data.split()
    if len(parts) < 3:
        logger.debug("CAA generic rdata too short: %r", data)
        return None

    hex_text = "".join(parts[2:])
    if len(hex_text) % 2 or not HEX_PAIR_RE.match(hex_text):
        logger.debug("CAA generic rdata is not valid hex: %r", hex_text)
        return None

    raw = bytes.fromhex(hex_text)
    if len(raw) < 2:
        logger.debug("CAA generic rdata buffer too short: %d", len(raw))
        return None

    flags = raw[0]
    tag_len = raw[1]
    if len(raw) < 2 + tag_len:
        logger.debug("CAA tag length %d exceeds rdata size %d", tag_len, len(raw))
        return None

    try:
        tag = raw[2 : 2 + tag_len].decode("utf-8")
        value = raw[2 + tag_len :].decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("CAA generic rdata is not valid UTF-8: %r", hex_text)
        return None

    return ParsedCAA(critical=bool(flags & 128), tag=tag, value=value)


def _decode_text(data: str) -> Optional[ParsedCAA]:
    match = CAA_TEXT_RE.match(data)
    if not match:
        logger.debug("CAA text form did not match: %r", data)
        return None
    flags = int(match.group(1))
    value = match.group(3) if match.group(3) is not None else match.group(4)
    return ParsedCAA(critical=bool(flags & 128), tag=match.group(2), value=value or "")


def decode_caa(answer: DNSAnswer) -> Optional[ParsedCAA]:
    """Decode one CAA answer into flags/tag/value.

    Both the presentation form (`0 issue "letsencrypt.org"`) and the generic
    hex form some resolvers return (`\\# 19 00 05 69 73 ...`) are accepted.
    Returns None for non-CAA answers and for anything malformed.
    """
    if answer.type != dns.rdatatype.CAA:
        return None
    data = (answer.data or "").strip()
    if data.startswith(GENERIC_RDATA_MARKER):
        return _decode_generic(data)
    return _decode_text(data)


def decode_all(answers: Iterable[DNSAnswer]) -> List[ParsedCAA]:
    return [parsed for parsed in (decode_caa(a) for a in answers) if parsed is not None]


def is_authority_permitted(records: Sequence[ParsedCAA], authority_domain: str) -> str:
    """Return `allowed` when `authority_domain` may issue under `records`.

    No records means no restriction. The value check is a substring match,
    so `"letsencrypt.org; validationmethods=dns-01"` still counts.
    """
    if not records:
        return ALLOWED
    permitted = any(r.tag in ("issue", "issuewild") and authority_domain in r.value for r in records)
    return ALLOWED if permitted else NOT_ALLOWED


def evaluate_authorities(records: Sequence[ParsedCAA]) -> Dict[str, str]:
    return {field: is_authority_permitted(records, domain) for field, domain in AUTHORITIES.items()}
