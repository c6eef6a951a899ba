from __future__ import annotations

import json
import os
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

RESULT_COLUMNS = (
    "hostname",
    "authoritative_nameservers",
    "is_proxied",
    "dns_record_type",
    "dns_result",
    "ssl_google",
    "ssl_ssl_com",
    "ssl_lets_encrypt",
    "zone_hold_status",
    "zone_hold_detail",
    "zone_hold_verification_method",
    "updated_at",
)

JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
TERMINAL_JOB_STATES = (JOB_COMPLETED, JOB_FAILED)
# A `running` job whose runner has not touched it for this long may be reclaimed.
JOB_LEASE_MS = 10 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def _harden_user_file(path: Path) -> None:
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def get_db_path() -> Path:
    custom = os.getenv("HOSTCHECK_DB")
    if custom:
        path = Path(custom).expanduser().resolve()
    else:
        path = Path.home() / ".hostcheck" / "hostcheck.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def init_db(db_path: Optional[Path] = None) -> Path:
    """Initialize DB schema and return DB path.

    Called by all storage entrypoints to ensure schema is available.
    """
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS hosts (
                hostname TEXT PRIMARY KEY,
                authoritative_nameservers TEXT NOT NULL DEFAULT '[]',
                is_proxied TEXT CHECK(is_proxied IN ('yes', 'no')),
                dns_record_type TEXT,
                dns_result TEXT,
                ssl_google TEXT CHECK(ssl_google IN ('allowed', 'not_allowed')),
                ssl_ssl_com TEXT CHECK(ssl_ssl_com IN ('allowed', 'not_allowed')),
                ssl_lets_encrypt TEXT CHECK(ssl_lets_encrypt IN ('allowed', 'not_allowed')),
                zone_hold_status TEXT CHECK(zone_hold_status IN ('yes', 'no', 'likely')),
                zone_hold_detail TEXT,
                zone_hold_verification_method TEXT CHECK(zone_hold_verification_method IN ('api', 'nameserver_inference')),
                updated_at INTEGER NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_hosts_updated ON hosts(updated_at DESC)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                hostname TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('pending', 'running', 'completed', 'failed')),
                result TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_hostname ON jobs(hostname)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS job_steps (
                job_id TEXT NOT NULL,
                step TEXT NOT NULL,
                output_json TEXT NOT NULL,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (job_id, step)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        conn.commit()
    finally:
        conn.close()
    _harden_user_file(path)
    return path


def _result_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    try:
        data["authoritative_nameservers"] = json.loads(data.get("authoritative_nameservers") or "[]")
    except ValueError:
        data["authoritative_nameservers"] = []
    return data


def upsert_result(result: Dict[str, Any], db_path: Optional[Path] = None) -> None:
    """Insert or replace every column of the row keyed by `hostname`."""
    path = init_db(db_path)
    values = dict(result)
    values["authoritative_nameservers"] = json.dumps(list(values.get("authoritative_nameservers") or []))
    placeholders = ", ".join("?" for _ in RESULT_COLUMNS)
    updates = ", ".join(f"{col}=excluded.{col}" for col in RESULT_COLUMNS if col != "hostname")

    conn = sqlite3.connect(path)
    try:
        conn.execute(
            f"""
            INSERT INTO hosts ({", ".join(RESULT_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT(hostname) DO UPDATE SET {updates}
            """,
            tuple(values.get(col) for col in RESULT_COLUMNS),
        )
        conn.commit()
    finally:
        conn.close()


def list_results(limit: Optional[int] = None, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        query = "SELECT * FROM hosts ORDER BY updated_at DESC, hostname"
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (int(limit),)
        return [_result_from_row(r) for r in conn.execute(query, params).fetchall()]
    finally:
        conn.close()


def count_results(db_path: Optional[Path] = None) -> int:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        row = conn.execute("SELECT COUNT(*) FROM hosts").fetchone()
        return int(row[0]) if row else 0
    finally:
        conn.close()


def get_result(hostname: str, db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        row = conn.execute("SELECT * FROM hosts WHERE hostname = ?", (hostname.strip().lower(),)).fetchone()
        return _result_from_row(row) if row else None
    finally:
        conn.close()


def reset_results(db_path: Optional[Path] = None) -> int:
    """Delete all stored host results and return the number of removed rows."""
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM hosts")
        conn.commit()
        return int(cur.rowcount or 0)
    finally:
        conn.close()


def _job_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    if data.get("result"):
        try:
            data["result"] = json.loads(data["result"])
        except ValueError:
            pass
    return data


def create_job(hostname: str, db_path: Optional[Path] = None) -> str:
    path = init_db(db_path)
    job_id = uuid.uuid4().hex
    stamp = now_ms()
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "INSERT INTO jobs (id, hostname, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (job_id, hostname, JOB_PENDING, stamp, stamp),
        )
        conn.commit()
    finally:
        conn.close()
    return job_id


def update_job(
    job_id: str,
    status: str,
    result: Optional[Dict[str, Any]] = None,
    db_path: Optional[Path] = None,
) -> bool:
    """Move a job to `status`. Terminal jobs are never changed again."""
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE jobs SET status = ?, result = COALESCE(?, result), updated_at = ?
            WHERE id = ? AND status NOT IN (?, ?)
            """,
            (
                status,
                None if result is None else json.dumps(result, ensure_ascii=False),
                now_ms(),
                job_id,
                *TERMINAL_JOB_STATES,
            ),
        )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def claim_job(job_id: str, lease_ms: int = JOB_LEASE_MS, db_path: Optional[Path] = None) -> bool:
    """Atomically move a job to `running`.

    Succeeds for `pending` jobs and for `running` jobs whose lease expired
    (an interrupted run). Returns False when another runner holds the job or
    it already finished.
    """
    path = init_db(db_path)
    stamp = now_ms()
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE jobs SET status = ?, updated_at = ?
            WHERE id = ? AND (status = ? OR (status = ? AND updated_at < ?))
            """,
            (JOB_RUNNING, stamp, job_id, JOB_PENDING, JOB_RUNNING, stamp - int(lease_ms)),
        )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def get_job(job_id: str, db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _job_from_row(row) if row else None
    finally:
        conn.close()


def list_jobs(limit: int = 50, hostname: Optional[str] = None, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        if hostname:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE hostname = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (hostname, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM jobs ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_job_from_row(r) for r in rows]
    finally:
        conn.close()


def save_step_output(job_id: str, step: str, output: Any, db_path: Optional[Path] = None) -> None:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            INSERT INTO job_steps (job_id, step, output_json, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(job_id, step) DO UPDATE SET output_json=excluded.output_json, updated_at=excluded.updated_at
            """,
            (job_id, step, json.dumps(output, ensure_ascii=False), now_ms()),
        )
        conn.commit()
    finally:
        conn.close()


def get_step_outputs(job_id: str, db_path: Optional[Path] = None) -> Dict[str, Any]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        rows = conn.execute("SELECT step, output_json FROM job_steps WHERE job_id = ?", (job_id,)).fetchall()
        return {str(step): json.loads(raw) for step, raw in rows}
    finally:
        conn.close()


def get_setting(key: str, db_path: Optional[Path] = None) -> Optional[str]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return str(row[0]) if row and row[0] is not None else None
    finally:
        conn.close()


def get_settings(prefix: Optional[str] = None, db_path: Optional[Path] = None) -> Dict[str, Optional[str]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        if prefix:
            rows = conn.execute(
                "SELECT key, value FROM settings WHERE key LIKE ? ORDER BY key",
                (f"{prefix}%",),
            ).fetchall()
        else:
            rows = conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
        return {str(k): (None if v is None else str(v)) for k, v in rows}
    finally:
        conn.close()


def set_setting(key: str, value: Optional[str], db_path: Optional[Path] = None) -> None:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=datetime('now')
            """,
            (key, value),
        )
        conn.commit()
    finally:
        conn.close()
