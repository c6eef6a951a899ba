from __future__ import annotations

"""Persistence and export facade for hostcheck.

Public storage API remains stable while implementation is split by concern:
- `hostcheck.storage_parts.db`: SQLite tables for results, jobs and settings
- `hostcheck.storage_parts.export`: JSON/CSV export of stored results
"""

from .storage_parts.db import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_RUNNING,
    JOB_LEASE_MS,
    TERMINAL_JOB_STATES,
    claim_job,
    count_results,
    create_job,
    get_db_path,
    get_job,
    get_result,
    get_setting,
    get_settings,
    get_step_outputs,
    init_db,
    list_jobs,
    list_results,
    now_ms,
    reset_results,
    save_step_output,
    set_setting,
    update_job,
    upsert_result,
)
from .storage_parts.export import EXPORT_FORMATS, export_results

__all__ = [
    "JOB_COMPLETED",
    "JOB_FAILED",
    "JOB_PENDING",
    "JOB_RUNNING",
    "JOB_LEASE_MS",
    "TERMINAL_JOB_STATES",
    "EXPORT_FORMATS",
    "get_db_path",
    "init_db",
    "now_ms",
    "upsert_result",
    "list_results",
    "count_results",
    "get_result",
    "reset_results",
    "create_job",
    "claim_job",
    "update_job",
    "get_job",
    "list_jobs",
    "save_step_output",
    "get_step_outputs",
    "get_setting",
    "get_settings",
    "set_setting",
    "export_results",
]
