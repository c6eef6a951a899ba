from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest

import hostcheck.engine.runtime as runtime
from hostcheck.errors import ResolutionError, ValidationError
from hostcheck.storage import count_results, get_result


def _check(client, hostname, db_path, **options):
    async def run():
        async with client:
            return await runtime.check_hostname_async(hostname, client=client, db_path=db_path, **options)

    return asyncio.run(run())


def test_normalize_hostname_accepts_urls_and_case():
    assert runtime.normalize_hostname("  Example.COM. ") == "example.com"
    assert runtime.normalize_hostname("https://shop.example.com/cart") == "shop.example.com"
    assert runtime.normalize_hostname("not a domain") is None
    assert runtime.normalize_hostname("-bad.example.com") is None
    assert runtime.normalize_hostname("") is None


def test_normalize_hostname_keeps_wildcard_and_service_labels():
    assert runtime.normalize_hostname("*.Example.com") == "*.example.com"
    assert runtime.normalize_hostname("_acme-challenge.example.com") == "_acme-challenge.example.com"
    assert runtime.normalize_hostname("a.*.example.com") is None
    assert runtime.normalize_hostname("*") is None


def test_platform_rejection_of_wildcard_is_reported_in_detail(make_client, db_path):
    def api(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"success": False, "errors": [{"code": 1407, "message": "Invalid custom hostname"}]})

    client = make_client({("*.example.com", "A"): [(1, "1.2.3.4")]}, api=api)
    result = _check(client, "*.example.com", db_path, api_token="t", zone_id="z")
    assert result.hostname == "*.example.com"
    assert result.zone_hold_status == "no"
    assert result.zone_hold_detail == "Invalid custom hostname"


def test_validate_hostname_rejects_empty_and_invalid():
    with pytest.raises(ValidationError, match="Hostname required"):
        runtime.validate_hostname("   ")
    with pytest.raises(ValidationError, match="Invalid hostname"):
        runtime.validate_hostname("bad host")


def test_fmt_td_expected_format():
    assert runtime.fmt_td(timedelta(hours=2, minutes=3, seconds=4)) == "02:03:04"
    assert runtime.fmt_td(None) == "-"


def test_plain_hostname_end_to_end(make_client, db_path):
    client = make_client({("example.com", "A"): [(1, "1.2.3.4")]})
    result = _check(client, "example.com", db_path)

    assert result.hostname == "example.com"
    assert result.is_proxied == "no"
    assert result.dns_record_type == "A"
    assert result.dns_result == "1.2.3.4"
    assert result.authoritative_nameservers == []
    assert (result.ssl_google, result.ssl_ssl_com, result.ssl_lets_encrypt) == ("allowed", "allowed", "allowed")
    assert result.zone_hold_status == "no"
    assert result.zone_hold_detail == "Missing credentials"
    assert result.zone_hold_verification_method == "api"
    assert result.updated_at > 0

    stored = get_result("example.com", db_path=db_path)
    assert stored == result.to_dict()

    queried = [(r.url.params["name"], r.url.params["type"]) for r in client.seen]
    assert queried == [
        ("example.com", "A"),
        ("example.com", "NS"),
        ("com", "NS"),
        ("example.com", "CAA"),
        ("com", "CAA"),
    ]


def test_rerun_overwrites_stored_row(make_client, db_path):
    _check(make_client({("example.com", "A"): [(1, "1.2.3.4")]}), "example.com", db_path)
    second = _check(make_client({("example.com", "A"): [(1, "104.16.1.1"), (1, "104.16.1.2")]}), "example.com", db_path)

    assert count_results(db_path) == 1
    stored = get_result("example.com", db_path=db_path)
    assert stored["dns_result"] == "104.16.1.1, 104.16.1.2"
    assert stored["is_proxied"] == "yes"
    assert stored["updated_at"] == second.updated_at


def test_proxied_hostname_with_caa_and_hold(make_client, db_path):
    records = {
        ("shop.example.com", "A"): [(5, "shop.example.com.cdn.cloudflare.net."), (1, "172.67.1.1")],
        ("example.com", "NS"): [(2, "ana.ns.cloudflare.com."), (2, "bob.ns.cloudflare.com.")],
        ("shop.example.com", "CAA"): [
            (257, '0 issue "letsencrypt.org"'),
            (257, "\\# 15 00 05 69 73 73 75 65 70 6b 69 2e 67 6f 6f 67"),
        ],
    }

    def api(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={"success": False, "errors": [{"code": 1406, "message": "Custom hostname is active on another account"}]},
        )

    result = _check(make_client(records, api=api), "shop.example.com", db_path, api_token="t", zone_id="z")

    assert result.dns_result == "172.67.1.1"
    assert result.is_proxied == "yes"
    assert result.authoritative_nameservers == ["ana.ns.cloudflare.com.", "bob.ns.cloudflare.com."]
    assert result.ssl_lets_encrypt == "allowed"
    assert result.ssl_google == "allowed"
    assert result.ssl_ssl_com == "not_allowed"
    assert result.zone_hold_status == "yes"
    assert result.zone_hold_verification_method == "api"


def test_resolution_failure_aborts_and_stores_nothing(make_client, db_path):
    with pytest.raises(ResolutionError):
        _check(make_client(doh_status=500), "example.com", db_path)
    assert count_results(db_path) == 0


def test_invalid_hostname_rejected_before_resolution(make_client, db_path):
    client = make_client()
    with pytest.raises(ValidationError):
        _check(client, "", db_path)
    assert client.seen == []


def test_checker_runs_steps_in_order(make_client, db_path):
    names = []

    async def recording_step(name, fn):
        names.append(name)
        return await fn()

    client = make_client({("example.com", "A"): [(1, "1.2.3.4")]})

    async def run():
        async with client:
            return await runtime.HostChecker("example.com", client, db_path=db_path).run(recording_step)

    asyncio.run(run())
    assert tuple(names) == runtime.HostChecker.STEPS


def test_check_hostname_sync_api(monkeypatch, make_client, db_path):
    monkeypatch.setattr(runtime, "_make_client", lambda *args, **kwargs: make_client({("example.com", "A"): [(1, "1.2.3.4")]}))
    result = runtime.check_hostname("example.com", db_path=db_path, save=False)
    assert result.dns_result == "1.2.3.4"
    assert count_results(db_path) == 0
