from __future__ import annotations

"""Terminal rendering helpers for hostcheck.

This module contains presentation-only logic for check results and jobs.
It does not perform network or persistence operations.
"""

import json
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core import fmt_td

console = Console()
err_console = Console(stderr=True)


# Shared layout constants.
KV_FIELD_WIDTH = 30
SUMMARY_HOST_WIDTH = 28
SUMMARY_FLAG_WIDTH = 8
SUMMARY_SSL_WIDTH = 12


def _table_width() -> int:
    try:
        return max(80, int(console.size.width) - 2)
    except Exception:
        return 100


def _new_table(
    *,
    title: Optional[str] = None,
    box_style: Any = box.SIMPLE,
    show_header: bool = True,
    header_style: Optional[str] = None,
) -> Table:
    return Table(
        title=title,
        box=box_style,
        show_header=show_header,
        header_style=header_style,
        title_justify="left",
        width=_table_width(),
        expand=False,
        pad_edge=False,
    )


def _add_kv_columns(table: Table) -> None:
    value_width = max(24, _table_width() - KV_FIELD_WIDTH - 8)
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, min_width=KV_FIELD_WIDTH, max_width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", width=value_width, min_width=value_width, max_width=value_width, overflow="fold", no_wrap=False)


def _fmt_yes_no(value: Any) -> str:
    text = str(value or "-")
    if text == "yes":
        return "[green]yes[/green]"
    if text == "no":
        return "[dim]no[/dim]"
    return text


def _fmt_verdict(value: Any) -> str:
    text = str(value or "-")
    if text == "allowed":
        return "[green]allowed[/green]"
    if text == "not_allowed":
        return "[red]not allowed[/red]"
    return text


def _fmt_hold(value: Any) -> str:
    text = str(value or "-")
    if text == "yes":
        return "[red]yes[/red]"
    if text == "likely":
        return "[yellow]likely[/yellow]"
    if text == "no":
        return "[green]no[/green]"
    return text


def _fmt_job_status(value: Any) -> str:
    text = str(value or "-")
    colors = {"pending": "dim", "running": "cyan", "completed": "green", "failed": "red"}
    color = colors.get(text)
    return f"[{color}]{text}[/{color}]" if color else text


def _fmt_ms(value: Any) -> str:
    try:
        return datetime.fromtimestamp(int(value) / 1000).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError, OSError):
        return "-"


def _preview(values: List[Any], limit: int = 2) -> str:
    items = [str(v).strip() for v in values if str(v).strip()]
    if not items:
        return "-"
    head = items[:limit]
    tail = len(items) - len(head)
    if tail > 0:
        return f"{', '.join(head)} (+{tail})"
    return ", ".join(head)


def print_json_output(results: Any) -> None:
    try:
        sys.stdout.write(json.dumps(results, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        return


def output(results: Union[dict, List[dict], None], elapsed: Optional[timedelta] = None) -> None:
    """Render the compact summary table of check results."""
    if not results:
        err_console.print("[yellow]No results to display.[/yellow]")
        return

    items = [results] if isinstance(results, dict) else results

    table = _new_table(box_style=box.SIMPLE_HEAVY, show_header=True, header_style="bold cyan")
    table.add_column("Hostname", style="cyan", width=SUMMARY_HOST_WIDTH, min_width=SUMMARY_HOST_WIDTH, no_wrap=True, overflow="ellipsis")
    table.add_column("A", overflow="fold", no_wrap=False)
    table.add_column("Proxied", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("Nameservers", overflow="fold", no_wrap=False)
    table.add_column("Google", justify="center", width=SUMMARY_SSL_WIDTH, no_wrap=True)
    table.add_column("SSL.com", justify="center", width=SUMMARY_SSL_WIDTH, no_wrap=True)
    table.add_column("Let's Encrypt", justify="center", width=SUMMARY_SSL_WIDTH, no_wrap=True)
    table.add_column("Zone Hold", justify="center", width=SUMMARY_FLAG_WIDTH + 2, no_wrap=True)

    for item in items:
        table.add_row(
            str(item.get("hostname") or "-"),
            str(item.get("dns_result") or "-"),
            _fmt_yes_no(item.get("is_proxied")),
            _preview(item.get("authoritative_nameservers") or []),
            _fmt_verdict(item.get("ssl_google")),
            _fmt_verdict(item.get("ssl_ssl_com")),
            _fmt_verdict(item.get("ssl_lets_encrypt")),
            _fmt_hold(item.get("zone_hold_status")),
        )

    console.print(table)
    details = [item for item in items if item.get("zone_hold_detail")]
    for item in details:
        console.print(f"[yellow]Zone hold:[/yellow] {item.get('hostname')}: {item.get('zone_hold_detail')}")
    summary = f"[bold]Hosts:[/bold] {len(items)}"
    if elapsed is not None:
        summary += f"  [bold]Elapsed:[/bold] {fmt_td(elapsed)}"
    console.print(Panel.fit(summary, border_style="cyan"))


def output_detail(result: Dict[str, Any]) -> None:
    """Render every field of a single stored result."""
    table = _new_table(title=f"Result: {result.get('hostname', '-')}", box_style=box.MINIMAL_DOUBLE_HEAD)
    _add_kv_columns(table)
    table.add_row("Hostname", str(result.get("hostname") or "-"))
    table.add_row("Record Type", str(result.get("dns_record_type") or "-"))
    table.add_row("DNS Result", str(result.get("dns_result") or "-"))
    table.add_row("Proxied", _fmt_yes_no(result.get("is_proxied")))
    table.add_row("Nameservers", "\n".join(result.get("authoritative_nameservers") or []) or "-")
    table.add_row("SSL Google (pki.goog)", _fmt_verdict(result.get("ssl_google")))
    table.add_row("SSL SSL.com", _fmt_verdict(result.get("ssl_ssl_com")))
    table.add_row("SSL Let's Encrypt", _fmt_verdict(result.get("ssl_lets_encrypt")))
    table.add_row("Zone Hold", _fmt_hold(result.get("zone_hold_status")))
    table.add_row("Zone Hold Detail", str(result.get("zone_hold_detail") or "-"))
    table.add_row("Verification", str(result.get("zone_hold_verification_method") or "-"))
    table.add_row("Updated", _fmt_ms(result.get("updated_at")))
    console.print(table)


def show_jobs(jobs: List[Dict[str, Any]]) -> None:
    if not jobs:
        err_console.print("[yellow]No jobs found in database.[/yellow]")
        return

    table = _new_table(title="Jobs", box_style=box.SIMPLE_HEAVY)
    table.add_column("ID", style="cyan", width=32, min_width=32, no_wrap=True)
    table.add_column("Hostname", overflow="fold", no_wrap=False)
    table.add_column("Status", width=10, no_wrap=True)
    table.add_column("Created", width=19, no_wrap=True)
    table.add_column("Updated", width=19, no_wrap=True)

    for job in jobs:
        table.add_row(
            str(job.get("id")),
            str(job.get("hostname")),
            _fmt_job_status(job.get("status")),
            _fmt_ms(job.get("created_at")),
            _fmt_ms(job.get("updated_at")),
        )
    console.print(table)


def show_job(job: Dict[str, Any]) -> None:
    console.print(
        Panel.fit(
            f"[bold]Job[/bold] {job.get('id')}  [bold]Hostname:[/bold] {job.get('hostname')}  "
            f"[bold]Status:[/bold] {_fmt_job_status(job.get('status'))}  "
            f"[bold]Updated:[/bold] {_fmt_ms(job.get('updated_at'))}",
            border_style="blue",
        )
    )
    result = job.get("result")
    if job.get("status") == "failed" and isinstance(result, dict):
        err_console.print(f"[red]Error:[/red] {result.get('error') or '-'}")
    elif isinstance(result, dict) and result.get("hostname"):
        output_detail(result)
