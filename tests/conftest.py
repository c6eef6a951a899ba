from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

DOH_HOST = "cloudflare-dns.com"
API_HOST = "api.cloudflare.com"

Records = Dict[Tuple[str, str], List[Tuple[int, str]]]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("CLOUDFLARE_API_TOKEN", raising=False)
    monkeypatch.delenv("CLOUDFLARE_ZONE_ID", raising=False)
    monkeypatch.delenv("HOSTCHECK_DOH_URL", raising=False)
    monkeypatch.setenv("HOSTCHECK_DB", str(tmp_path / "default.db"))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "hostcheck.db"


def doh_payload(name: str, answers: List[Tuple[int, str]], status: int = 0) -> dict:
    return {
        "Status": status,
        "Answer": [{"name": name, "type": rr_type, "TTL": 300, "data": data} for rr_type, data in answers],
    }


@pytest.fixture
def make_client() -> Callable[..., httpx.AsyncClient]:
    """Build an AsyncClient whose DoH and platform API traffic is served locally.

    `records` maps (name, type) to answers; unknown names get an empty answer
    set. `api` handles platform API requests and defaults to 404. Every
    request is appended to `client.seen`.
    """

    def factory(
        records: Optional[Records] = None,
        api: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        doh_status: int = 200,
    ) -> httpx.AsyncClient:
        table = records or {}
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == DOH_HOST:
                if doh_status != 200:
                    return httpx.Response(doh_status)
                name = request.url.params["name"]
                rtype = request.url.params["type"]
                return httpx.Response(200, json=doh_payload(name, table.get((name, rtype), [])))
            if request.url.host == API_HOST and api is not None:
                return api(request)
            return httpx.Response(404, json={"success": False, "errors": []})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.seen = seen  # type: ignore[attr-defined]
        return client

    return factory
