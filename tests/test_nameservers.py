from __future__ import annotations

import asyncio

from hostcheck.engine.doh import DoHResolver
from hostcheck.engine.nameservers import get_authoritative_nameservers, parent_domain, resolve_caa_answers


def _queried(client):
    return [(r.url.params["name"], r.url.params["type"]) for r in client.seen]


def test_parent_domain_drops_leftmost_label():
    assert parent_domain("a.b.c") == "b.c"
    assert parent_domain("sub.example.com") == "example.com"
    assert parent_domain("localhost") is None


def test_nameservers_found_on_hostname_skip_parent(make_client):
    client = make_client({("example.com", "NS"): [(2, "ana.ns.cloudflare.com."), (2, "bob.ns.cloudflare.com.")]})

    async def run():
        async with client:
            return await get_authoritative_nameservers(DoHResolver(client), "example.com")

    assert asyncio.run(run()) == ["ana.ns.cloudflare.com.", "bob.ns.cloudflare.com."]
    assert _queried(client) == [("example.com", "NS")]


def test_nameservers_walk_up_exactly_one_level(make_client):
    client = make_client()

    async def run():
        async with client:
            return await get_authoritative_nameservers(DoHResolver(client), "sub.example.com")

    assert asyncio.run(run()) == []
    assert _queried(client) == [("sub.example.com", "NS"), ("example.com", "NS")]


def test_nameservers_from_parent(make_client):
    client = make_client({("example.com", "NS"): [(2, "ns1.example.net.")]})

    async def run():
        async with client:
            return await get_authoritative_nameservers(DoHResolver(client), "www.example.com")

    assert asyncio.run(run()) == ["ns1.example.net."]


def test_single_label_hostname_does_not_walk_up(make_client):
    client = make_client()

    async def run():
        async with client:
            return await get_authoritative_nameservers(DoHResolver(client), "localhost")

    assert asyncio.run(run()) == []
    assert _queried(client) == [("localhost", "NS")]


def test_caa_walk_up_uses_parent_records(make_client):
    client = make_client({("example.com", "CAA"): [(257, '0 issue "letsencrypt.org"')]})

    async def run():
        async with client:
            return await resolve_caa_answers(DoHResolver(client), "www.example.com")

    answers = asyncio.run(run())
    assert [a.data for a in answers] == ['0 issue "letsencrypt.org"']
    assert _queried(client) == [("www.example.com", "CAA"), ("example.com", "CAA")]
