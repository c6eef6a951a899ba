from __future__ import annotations

"""Authoritative nameserver and CAA lookups with a one-level parent walk-up."""

from typing import Callable, List, Optional

import dns.rdatatype

from .doh import DNSAnswer, DNSResponse, DoHResolver, RecordType


def parent_domain(hostname: str) -> Optional[str]:
    """Drop the leftmost label: `a.b.c` -> `b.c`. None when there is no dot."""
    labels = hostname.strip(".").split(".")
    parent = ".".join(labels[1:])
    return parent or None


async def _resolve_with_walkup(
    resolver: DoHResolver,
    hostname: str,
    record_type: RecordType,
    extract: Callable[[DNSResponse], list],
) -> list:
    # Exactly one retry against the parent; deeper delegation is not chased.
    found = extract(await resolver.resolve(hostname, record_type))
    if found:
        return found
    parent = parent_domain(hostname)
    if not parent:
        return found
    return extract(await resolver.resolve(parent, record_type))


async def get_authoritative_nameservers(resolver: DoHResolver, hostname: str) -> List[str]:
    return await _resolve_with_walkup(
        resolver,
        hostname,
        RecordType.NS,
        lambda response: response.data_for(dns.rdatatype.NS),
    )


async def resolve_caa_answers(resolver: DoHResolver, hostname: str) -> List[DNSAnswer]:
    """Raw CAA answers for `hostname`, falling back to its parent when empty.

    Presence is judged on the whole answer set (as the resolver returned it),
    not on decodable records.
    """
    return await _resolve_with_walkup(
        resolver,
        hostname,
        RecordType.CAA,
        lambda response: list(response.answers),
    )
