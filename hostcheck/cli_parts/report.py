from __future__ import annotations

import sys
from typing import Optional

from ..engine.runtime import normalize_hostname
from ..output import console, err_console, output, output_detail, print_json_output, show_job, show_jobs
from ..storage import export_results, get_job, get_result, list_jobs, list_results, reset_results


def results_mode(selector: Optional[str], as_json: bool = False) -> None:
    """Show all stored results (newest first) or the row for one hostname."""
    if selector in (None, "", "all"):
        rows = list_results()
        if as_json:
            print_json_output(rows)
        else:
            output(rows)
        return

    hostname = normalize_hostname(selector)
    row = get_result(hostname) if hostname else None
    if row is None:
        err_console.print(f"[yellow]No stored result for:[/yellow] {selector}")
        return
    if as_json:
        print_json_output(row)
    else:
        output_detail(row)


def jobs_mode(limit: int = 50, hostname: Optional[str] = None, as_json: bool = False) -> None:
    jobs = list_jobs(limit=limit, hostname=normalize_hostname(hostname) if hostname else None)
    if as_json:
        print_json_output(jobs)
    else:
        show_jobs(jobs)


def job_mode(job_id: str, as_json: bool = False) -> bool:
    job = get_job(job_id.strip())
    if job is None:
        err_console.print(f"[red]Job not found:[/red] {job_id}")
        return False
    if as_json:
        print_json_output(job)
    else:
        show_job(job)
    return True


def export_mode(export_format: str, output_path: Optional[str] = None) -> Optional[str]:
    rows = list_results()
    if not rows:
        err_console.print("[yellow]No stored results to export.[/yellow]")
        return None
    try:
        path = export_results(rows, export_format, output_path)
    except (ValueError, OSError) as exc:
        err_console.print(f"[red]Export failed:[/red] {exc}")
        return None
    console.print(f"[green]Exported {len(rows)} results:[/green] {path}")
    return path


def clear_mode(assume_yes: bool = False) -> int:
    if not assume_yes and sys.stdin.isatty():
        answer = input("Delete ALL stored results? [y/N]: ").strip().lower()
        if answer not in {"y", "yes"}:
            console.print("[yellow]Clear cancelled.[/yellow]")
            return 0
    removed = reset_results()
    console.print(f"[green]All records cleared[/green] ({removed} removed)")
    return removed
