from __future__ import annotations

from pathlib import Path

from hostcheck.cli import _load_hostnames_from_file, _normalize_hostname_input, _normalize_hostname_list, _split_jobs
from hostcheck.cli_parts.setup import _mask_secret, effective_credentials, load_saved_runtime_settings
from hostcheck.engine.doh import DEFAULT_DOH_URL
from hostcheck.storage import set_setting


def test_load_hostnames_from_file_strips_empty_lines(tmp_path: Path):
    source = tmp_path / "hosts.txt"
    source.write_text("\nexample.com\n\n# comment\nwww.test.org\n", encoding="utf-8")
    assert _load_hostnames_from_file(str(source)) == ["example.com", "www.test.org"]


def test_load_hostnames_from_csv_uses_first_column(tmp_path: Path):
    source = tmp_path / "hosts.csv"
    source.write_text("hostname,owner\nexample.com,web\n,\nshop.example.com,shop\n", encoding="utf-8")
    assert _load_hostnames_from_file(str(source)) == ["example.com", "shop.example.com"]


def test_normalize_hostname_input_accepts_url_and_plain_hostname():
    assert _normalize_hostname_input("https://Shop.Example.com/path?q=1") == "shop.example.com"
    assert _normalize_hostname_input("sub.example.com") == "sub.example.com"
    assert _normalize_hostname_input("not a domain") is None


def test_normalize_hostname_list_deduplicates_and_filters_invalid():
    values = [
        "https://example.com",
        "example.com",
        "EXAMPLE.com",
        "sub.example.com",
        "bad domain",
        "",
    ]
    assert _normalize_hostname_list(values) == ["example.com", "sub.example.com"]


def test_split_jobs_by_status():
    jobs = [
        {"id": "1", "status": "completed", "result": {"hostname": "a.example"}},
        {"id": "2", "status": "failed", "result": {"error": "boom"}},
        {"id": "3", "status": "running", "result": None},
    ]
    completed, failed = _split_jobs(jobs)
    assert [j["id"] for j in completed] == ["1"]
    assert [j["id"] for j in failed] == ["2"]


def test_saved_runtime_settings_defaults():
    saved = load_saved_runtime_settings()
    assert saved["doh_url"] == DEFAULT_DOH_URL
    assert saved["timeout"] == 5.0
    assert saved["threads"] == 10
    assert saved["retries"] == 2
    assert saved["api_token"] is None


def test_saved_runtime_settings_parse_stored_values():
    set_setting("runtime.timeout", "2.5")
    set_setting("runtime.threads", "x")
    set_setting("runtime.retries", "0")
    set_setting("apikey.cloudflare_zone_id", " zone-1 ")
    saved = load_saved_runtime_settings()
    assert saved["timeout"] == 2.5
    assert saved["threads"] == 10
    assert saved["retries"] == 0
    assert saved["zone_id"] == "zone-1"


def test_environment_credentials_win_over_saved(monkeypatch):
    saved = {"api_token": "saved-token", "zone_id": "saved-zone"}
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "env-token")
    assert effective_credentials(saved) == {"api_token": "env-token", "zone_id": "saved-zone"}


def test_mask_secret():
    assert _mask_secret(None) == ""
    assert _mask_secret("short") == "*****"
    assert _mask_secret("abcd1234efgh") == "abcd****efgh"
