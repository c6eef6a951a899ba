from __future__ import annotations

"""Command-line interface for hostcheck.

This module translates CLI flags into runtime settings, runs hostname checks
as jobs through `hostcheck.core`, and handles setup/results workflows backed
by local storage.
"""

import argparse
import csv
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .cli_parts.report import clear_mode as _clear_mode
from .cli_parts.report import export_mode as _export_mode
from .cli_parts.report import job_mode as _job_mode
from .cli_parts.report import jobs_mode as _jobs_mode
from .cli_parts.report import results_mode as _results_mode
from .cli_parts.setup import effective_credentials as _effective_credentials
from .cli_parts.setup import load_saved_runtime_settings as _load_saved_runtime_settings
from .cli_parts.setup import setup_mode as _setup_mode
from .cli_parts.status import render_runtime_status_panel as _render_runtime_status_panel
from .core import _run_async, _run_coro_sync, normalize_hostname
from .output import console, err_console, output, print_json_output
from .storage import EXPORT_FORMATS
from .version import __version__


def _load_hostnames_from_file(file_path: str) -> List[str]:
    """Read hostnames one per line; `.csv` files use the first column."""
    path = Path(file_path)
    with path.open("r", encoding="utf-8", newline="") as fh:
        if path.suffix.lower() == ".csv":
            values = [row[0].strip() for row in csv.reader(fh) if row and row[0].strip()]
            if values and values[0].lower() == "hostname":
                values = values[1:]
            return values
        return [line.strip() for line in fh if line.strip() and not line.strip().startswith("#")]


def _normalize_hostname_input(value: str) -> Optional[str]:
    raw = (value or "").strip()
    if "://" in raw:
        parsed = urlparse(raw)
        return normalize_hostname(parsed.hostname or "")
    return normalize_hostname(raw)


def _normalize_hostname_list(values: List[str]) -> List[str]:
    normalized: List[str] = []
    seen: set[str] = set()
    for raw in values:
        hostname = _normalize_hostname_input(raw)
        if not hostname or hostname in seen:
            continue
        seen.add(hostname)
        normalized.append(hostname)
    return normalized


def _run_with_rich_progress(hostnames: List[str], **kwargs: Any) -> List[Dict[str, Any]]:
    """Execute checks with a Rich progress bar bound to async callbacks."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("Checking hosts", total=max(len(hostnames), 1))

        def cb(done: int, total: int) -> None:
            progress.update(task_id, total=max(total, 1), completed=done)

        return _run_coro_sync(_run_async(hostnames, progress_callback=cb, **kwargs))


def _split_jobs(jobs: List[Dict[str, Any]]) -> tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    completed = [j for j in jobs if j.get("status") == "completed" and isinstance(j.get("result"), dict)]
    failed = [j for j in jobs if j.get("status") == "failed"]
    return completed, failed


def main() -> None:
    """CLI entrypoint.

    This function is responsible for argument parsing, config layering
    (CLI > environment/.env for credentials > saved setup > built-in defaults),
    mode dispatch and result handling.
    """
    parser = argparse.ArgumentParser(
        prog="hostcheck",
        description=(
            f"hostcheck v.{__version__} - proxy, nameserver, CAA and zone hold checks\n"
            "CLI options > environment (.env) > saved setup (--setup) > built-in defaults."
        ),
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-d", "--domain", help="Hostname to check. Without -d/-f, reads hostnames from stdin.")
    target_group.add_argument("-f", "--file", help="File with hostnames, one per line (.csv: first column).")

    results_group = parser.add_argument_group("Results and Jobs")
    results_group.add_argument(
        "--results",
        nargs="?",
        const="all",
        metavar="HOSTNAME",
        help="Show stored results (newest first), or the stored row for HOSTNAME.",
    )
    results_group.add_argument("--jobs", help="List recent jobs (optionally filtered by --domain).", action="store_true")
    results_group.add_argument("--job", metavar="ID", help="Show status and result of one job.")
    results_group.add_argument("--export", choices=EXPORT_FORMATS, help="Export stored results as JSON or CSV.")
    results_group.add_argument("--output", "-o", help="Output path for --export.")
    results_group.add_argument("--clear", help="Delete all stored results.", action="store_true")
    results_group.add_argument("--yes", "-y", help="Do not ask for confirmation with --clear.", action="store_true")

    setup_group = parser.add_argument_group("Setup")
    setup_group.add_argument(
        "--setup",
        help="Interactive setup: save runtime defaults and API credentials in the local DB.",
        action="store_true",
    )

    runtime_group = parser.add_argument_group("Runtime Overrides (Advanced)")
    runtime_group.add_argument("--doh-url", help="DNS-over-HTTPS endpoint (overrides saved setup).", dest="doh_url")
    runtime_group.add_argument("--timeout", help="Per-request timeout in seconds.", dest="timeout", type=float)
    runtime_group.add_argument("--threads", help="Concurrent checks.", dest="threads", type=int)
    runtime_group.add_argument("--retries", help="Retries per step on transient failure.", dest="retries", type=int)

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--silent", help="Silent mode (hide progress).", action="store_true")
    output_group.add_argument("--json", help="JSON-only output (forces --silent).", action="store_true")
    output_group.add_argument("--status", help="Print effective runtime status and continue.", action="store_true")
    args = parser.parse_args()
    if args.json:
        args.silent = True

    if args.setup:
        _setup_mode()
        return
    if args.job:
        if not _job_mode(args.job, as_json=args.json):
            sys.exit(1)
        return
    if args.jobs:
        _jobs_mode(hostname=args.domain, as_json=args.json)
        return
    if args.results is not None:
        _results_mode(args.results, as_json=args.json)
        return
    if args.export:
        _export_mode(args.export, args.output)
        return
    if args.clear:
        _clear_mode(assume_yes=args.yes)
        return

    hostnames: List[str] = []
    source = "domain"
    if args.domain:
        hostname = _normalize_hostname_input(args.domain)
        if not hostname:
            err_console.print(f"[red]Invalid hostname input:[/red] {args.domain}")
            sys.exit(2)
        hostnames = [hostname]
    elif args.file:
        if not Path(args.file).is_file():
            err_console.print(f"[red]File not found:[/red] {args.file}")
            sys.exit(2)
        try:
            raw_values = _load_hostnames_from_file(args.file)
        except (OSError, UnicodeDecodeError) as exc:
            err_console.print(f"[red]Cannot read file:[/red] {args.file} ({exc})")
            sys.exit(2)
        hostnames = _normalize_hostname_list(raw_values)
        source = args.file
        if not hostnames:
            err_console.print(f"[yellow]No hostnames found in file:[/yellow] {args.file}")
            return
    elif not sys.stdin.isatty():
        hostnames = _normalize_hostname_list([line for line in sys.stdin.read().splitlines() if line.strip()])
        source = "stdin"

    saved = _load_saved_runtime_settings()
    credentials = _effective_credentials(saved)
    doh_url = args.doh_url or os.getenv("HOSTCHECK_DOH_URL") or saved["doh_url"]
    timeout = args.timeout if args.timeout is not None else float(saved["timeout"])
    threads = args.threads if args.threads is not None else int(saved["threads"])
    retries = args.retries if args.retries is not None else int(saved["retries"])

    if args.status and not args.json:
        _render_runtime_status_panel(
            target=", ".join(hostnames[:3]) + (" ..." if len(hostnames) > 3 else "") if hostnames else "-",
            source=source,
            target_count=len(hostnames) if hostnames else None,
            doh_url=doh_url,
            timeout=timeout,
            threads=threads,
            retries=retries,
            api_token=credentials["api_token"],
            zone_id=credentials["zone_id"],
        )

    if not hostnames:
        if args.status:
            return
        parser.print_help(sys.stderr)
        return

    run_kwargs: Dict[str, Any] = {
        "threads": threads,
        "timeout": timeout,
        "retries": retries,
        "doh_url": doh_url,
        "api_token": credentials["api_token"],
        "zone_id": credentials["zone_id"],
    }

    start_time = datetime.now()
    if args.silent:
        jobs = _run_coro_sync(_run_async(hostnames, **run_kwargs))
    else:
        jobs = _run_with_rich_progress(hostnames, **run_kwargs)
    elapsed = datetime.now() - start_time

    completed, failed = _split_jobs(jobs)
    if args.json:
        print_json_output(jobs if len(jobs) != 1 else jobs[0])
    else:
        if completed:
            output([j["result"] for j in completed], elapsed)
        for job in failed:
            error = (job.get("result") or {}).get("error") if isinstance(job.get("result"), dict) else None
            err_console.print(f"[red]Check failed:[/red] {job.get('hostname')} ({error or 'unknown error'}) job={job.get('id')}")
    if failed and not completed:
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
