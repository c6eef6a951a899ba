from __future__ import annotations

import os
import sys
from typing import Optional

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..engine.doh import DEFAULT_DOH_URL
from ..engine.jobs import DEFAULT_RETRIES
from ..engine.runtime import DEFAULT_TIMEOUT
from ..output import console, err_console
from ..storage import get_settings, set_setting

DEFAULT_THREADS = 10


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def _mask_secret(value: Optional[str]) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def load_saved_runtime_settings() -> dict:
    saved = get_settings()

    def _parse_float(value: Optional[str], default: float) -> float:
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            return default

    def _parse_int(value: Optional[str]) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except ValueError:
            return None

    retries = _parse_int(saved.get("runtime.retries"))
    return {
        "doh_url": saved.get("runtime.doh_url") or DEFAULT_DOH_URL,
        "timeout": _parse_float(saved.get("runtime.timeout"), DEFAULT_TIMEOUT),
        "threads": _parse_int(saved.get("runtime.threads")) or DEFAULT_THREADS,
        "retries": DEFAULT_RETRIES if retries is None else retries,
        "api_token": _normalize_optional(saved.get("apikey.cloudflare_token")),
        "zone_id": _normalize_optional(saved.get("apikey.cloudflare_zone_id")),
    }


def effective_credentials(saved: dict) -> dict:
    """Environment (including .env) wins over saved setup for credentials."""
    return {
        "api_token": _normalize_optional(os.getenv("CLOUDFLARE_API_TOKEN")) or saved.get("api_token"),
        "zone_id": _normalize_optional(os.getenv("CLOUDFLARE_ZONE_ID")) or saved.get("zone_id"),
    }


def setup_mode() -> None:
    """Interactive setup editor for persisted runtime defaults and API credentials."""
    if not sys.stdin.isatty():
        err_console.print("[red]--setup requires interactive terminal.[/red]")
        return

    config = load_saved_runtime_settings()
    console.print(Panel.fit("Hostcheck Setup", border_style="blue"))
    console.print("Select ID 1-6 to edit a single field. Use 0 to save and exit.")
    console.print("Use '-' to clear optional values (API token / zone id).")

    def _render_table(title: str) -> None:
        table = Table(title=title, box=box.SIMPLE_HEAVY)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Key", style="cyan")
        table.add_column("Value", overflow="fold")
        table.add_row("1", "DoH endpoint", str(config["doh_url"]))
        table.add_row("2", "Timeout", str(config["timeout"]))
        table.add_row("3", "Workers", str(config["threads"]))
        table.add_row("4", "Step retries", str(config["retries"]))
        table.add_row("5", "Cloudflare API token", _mask_secret(config["api_token"]))
        table.add_row("6", "Cloudflare zone id", str(config["zone_id"] or ""))
        console.print(table)

    def _ask_text(label: str, current_value: Optional[str], optional: bool = False) -> Optional[str]:
        prompt = f"{label} [{current_value if current_value is not None else ''}]: "
        raw = input(prompt).strip()
        if raw == "":
            return current_value
        if optional and raw == "-":
            return None
        return raw

    def _ask_number(label: str, key: str, cast) -> None:
        raw = input(f"{label} [{config[key]}]: ").strip()
        if not raw:
            return
        try:
            value = cast(raw)
        except ValueError:
            err_console.print(f"[yellow]Invalid {label.lower()}, value unchanged.[/yellow]")
            return
        if value < 0:
            err_console.print(f"[yellow]Invalid {label.lower()}, value unchanged.[/yellow]")
            return
        config[key] = value

    while True:
        _render_table("Current Setup")
        console.print("0 save and exit")
        choice = input("Select field [1-6] or 0 to save: ").strip()
        if choice == "0":
            break
        if choice == "1":
            config["doh_url"] = _ask_text("DoH endpoint", str(config["doh_url"])) or DEFAULT_DOH_URL
            continue
        if choice == "2":
            _ask_number("Timeout seconds", "timeout", float)
            continue
        if choice == "3":
            _ask_number("Workers", "threads", int)
            continue
        if choice == "4":
            _ask_number("Step retries", "retries", int)
            continue
        if choice == "5":
            raw_token = input(f"Cloudflare API token [{_mask_secret(config['api_token'])}]: ").strip()
            if raw_token == "-":
                config["api_token"] = None
            elif raw_token:
                config["api_token"] = raw_token
            continue
        if choice == "6":
            config["zone_id"] = _ask_text("Cloudflare zone id", config["zone_id"], optional=True)
            continue
        err_console.print("[red]Invalid selection.[/red] Use 0-6.")

    set_setting("runtime.doh_url", str(config["doh_url"]))
    set_setting("runtime.timeout", str(config["timeout"]))
    set_setting("runtime.threads", str(config["threads"]))
    set_setting("runtime.retries", str(config["retries"]))
    set_setting("apikey.cloudflare_token", config["api_token"])
    set_setting("apikey.cloudflare_zone_id", config["zone_id"])

    _render_table("Saved Setup")
