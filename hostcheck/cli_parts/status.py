from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich import box
from rich.columns import Columns
from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from ..output import console
from ..storage import count_results, get_db_path
from ..version import __version__


def _compact_home(path: Path) -> str:
    home = Path.home().resolve()
    resolved = path.expanduser().resolve()
    try:
        rel = resolved.relative_to(home)
        return f"~/{rel.as_posix()}" if str(rel) != "." else "~"
    except ValueError:
        return str(resolved)


def render_runtime_status_panel(
    target: str,
    source: str,
    target_count: Optional[int],
    doh_url: str,
    timeout: float,
    threads: int,
    retries: int,
    api_token: Optional[str] = None,
    zone_id: Optional[str] = None,
) -> None:
    """Render the startup header with runtime settings and credential status."""
    term_width = console.size.width
    runtime_width = 80
    half_width = 40
    card_height = 8
    key_col_width = 11
    value_col_width = runtime_width - key_col_width - 6

    def _fit_value(value: object) -> str:
        text = str(value)
        max_len = max(20, value_col_width)
        if len(text) <= max_len:
            return text
        return f"{text[: max_len - 3]}..."

    db_path = get_db_path()
    status = Table(box=box.MINIMAL, show_header=False, pad_edge=False, expand=False)
    status.add_column("Key", width=key_col_width, no_wrap=True)
    status.add_column("Value", width=value_col_width, no_wrap=True, overflow="crop")
    status.add_row("Target", _fit_value(target))
    status.add_row("Source", _fit_value(source))
    status.add_row("Hosts", _fit_value(target_count if target_count is not None else "-"))
    status.add_row("DoH", _fit_value(doh_url))
    status.add_row("Timeout", _fit_value(timeout))
    status.add_row("Results DB", _fit_value(f"{_compact_home(db_path)} ({count_results(db_path)} rows)"))

    execution = Table(title="Execution", box=box.SIMPLE_HEAVY)
    execution.add_column("Setting", style="cyan")
    execution.add_column("Value", style="white")
    execution.add_row("Workers", str(threads))
    execution.add_row("Step retries", str(retries))

    credentials = Table(title="Credentials", box=box.SIMPLE_HEAVY)
    credentials.add_column("Item", style="cyan")
    credentials.add_column("Status", style="white")
    credentials.add_row("API token", "✅ set" if api_token else "❌ missing")
    credentials.add_row("Zone id", "✅ set" if zone_id else "❌ missing")

    status_panel = Panel(status, title="Runtime", border_style="cyan", width=runtime_width, height=card_height + 2)
    exec_panel = Panel(execution, title="Execution", border_style="cyan", width=half_width, height=card_height)
    cred_panel = Panel(credentials, title="Zone Hold Probe", border_style="cyan", width=half_width, height=card_height)

    if term_width >= 90:
        content = Group(status_panel, Columns([exec_panel, cred_panel], equal=True, expand=False, padding=0))
    else:
        content = Group(status_panel, exec_panel, cred_panel)

    console.print(Panel(content, title=f"Hostcheck v{__version__}", border_style="blue", width=runtime_width + 4, expand=False))
