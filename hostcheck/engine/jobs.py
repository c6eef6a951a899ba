from __future__ import annotations

"""Job execution for hostname checks.

A job is created `pending`, flips to `running` when a runner claims it (one
active runner per job) and ends as `completed` (with the serialized result) or `failed` (with the error).
Each checker step goes through `JobRunner.step`, which persists its output
and retries transient failures, so re-running an interrupted job resumes
after the last completed step.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from ..errors import HostCheckError, ResolutionError, ValidationError
from ..storage import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_LEASE_MS,
    JOB_RUNNING,
    TERMINAL_JOB_STATES,
    claim_job,
    create_job,
    get_job,
    get_step_outputs,
    save_step_output,
    update_job,
)
from .runtime import DEFAULT_TIMEOUT, CheckResult, HostChecker, StepFn, _make_client, validate_hostname

DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY = 0.5
TRANSIENT_ERRORS = (ResolutionError, httpx.TransportError)

logger = logging.getLogger("hostcheck")


def submit_check(hostname: str, db_path: Optional[Path] = None) -> Dict[str, Any]:
    """Validate `hostname` and register a pending job for it."""
    normalized = validate_hostname(hostname)
    job_id = create_job(normalized, db_path=db_path)
    return {"id": job_id, "hostname": normalized}


def _reject_hostname(hostname: str, error: ValidationError, db_path: Optional[Path] = None) -> Dict[str, Any]:
    """Record unusable input as a `failed` job so it shows up beside the others."""
    job_id = create_job((hostname or "").strip(), db_path=db_path)
    update_job(job_id, JOB_FAILED, {"error": str(error)}, db_path=db_path)
    logger.warning("Job %s rejected: %s", job_id, error)
    return get_job(job_id, db_path=db_path)


class JobRunner:
    def __init__(
        self,
        job_id: str,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        db_path: Optional[Path] = None,
        lease_ms: int = JOB_LEASE_MS,
    ):
        self.job_id = job_id
        self.lease_ms = lease_ms
        self.retries = max(0, int(retries))
        self.retry_delay = retry_delay
        self.db_path = db_path
        self._done: Dict[str, Any] = {}

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def step(self, name: str, fn: StepFn) -> Any:
        if name in self._done:
            return self._done[name]

        attempt = 0
        while True:
            try:
                output = await fn()
                break
            except TRANSIENT_ERRORS as exc:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.warning("Step %s of job %s failed (%s); retry %d/%d", name, self.job_id, exc, attempt, self.retries)
                await asyncio.sleep(self.retry_delay * attempt)

        await self._call(save_step_output, self.job_id, name, output, self.db_path)
        # renews the running lease
        await self._call(update_job, self.job_id, JOB_RUNNING, None, self.db_path)
        self._done[name] = output
        return output

    async def run(self, client: httpx.AsyncClient, **options: Any) -> Dict[str, Any]:
        """Execute the job and return its final stored record.

        Terminal jobs, and jobs another runner currently holds, are returned
        untouched.
        """
        job = await self._call(get_job, self.job_id, self.db_path)
        if job is None:
            raise HostCheckError(f"Job not found: {self.job_id}")
        if job["status"] in TERMINAL_JOB_STATES:
            return job

        if not await self._call(claim_job, self.job_id, self.lease_ms, self.db_path):
            logger.info("Job %s already claimed by another runner", self.job_id)
            return await self._call(get_job, self.job_id, self.db_path)

        self._done = await self._call(get_step_outputs, self.job_id, self.db_path)
        logger.info("Job %s running for %s", self.job_id, job["hostname"])

        try:
            checker = HostChecker(job["hostname"], client, db_path=self.db_path, **options)
            result: CheckResult = await checker.run(self.step)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("Job %s failed: %s", self.job_id, message)
            await self._call(update_job, self.job_id, JOB_FAILED, {"error": message}, self.db_path)
        else:
            await self._call(update_job, self.job_id, JOB_COMPLETED, result.to_dict(), self.db_path)
            logger.info("Job %s completed", self.job_id)

        return await self._call(get_job, self.job_id, self.db_path)


async def run_job_async(
    job_id: str,
    client: Optional[httpx.AsyncClient] = None,
    retries: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    db_path: Optional[Path] = None,
    timeout: Optional[float] = None,
    **options: Any,
) -> Dict[str, Any]:
    runner = JobRunner(job_id, retries=retries, retry_delay=retry_delay, db_path=db_path)
    timeout_value = timeout or DEFAULT_TIMEOUT
    if client is not None:
        return await runner.run(client, timeout=timeout_value, **options)
    async with _make_client(timeout_value) as own_client:
        return await runner.run(own_client, timeout=timeout_value, **options)


async def _run_async(
    hostnames: Iterable[str],
    threads: Optional[int] = None,
    timeout: Optional[float] = None,
    retries: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    db_path: Optional[Path] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    client: Optional[httpx.AsyncClient] = None,
    **options: Any,
) -> List[Dict[str, Any]]:
    """Submit one job per hostname and run them with bounded concurrency.

    Returns the final job records in input order. A failing hostname ends as
    a `failed` job and does not stop the others.
    """
    timeout_value = timeout or DEFAULT_TIMEOUT
    max_workers = threads or 10
    submitted: List[Optional[Dict[str, Any]]] = []
    jobs: List[Optional[Dict[str, Any]]] = []
    for hostname in hostnames:
        try:
            submitted.append(submit_check(hostname, db_path=db_path))
            jobs.append(None)
        except ValidationError as exc:
            submitted.append(None)
            jobs.append(_reject_hostname(hostname, exc, db_path=db_path))
    runnable = [idx for idx, item in enumerate(submitted) if item is not None]

    async def _execute(shared: httpx.AsyncClient) -> None:
        queue: "asyncio.Queue[Optional[int]]" = asyncio.Queue()
        for idx in runnable:
            queue.put_nowait(idx)

        worker_count = max(1, min(max_workers, len(runnable)))
        for _ in range(worker_count):
            queue.put_nowait(None)

        total = len(submitted)
        done = total - len(runnable)
        done_lock = asyncio.Lock()

        async def worker() -> None:
            nonlocal done
            while True:
                idx = await queue.get()
                try:
                    if idx is None:
                        return
                    runner = JobRunner(submitted[idx]["id"], retries=retries, retry_delay=retry_delay, db_path=db_path)
                    jobs[idx] = await runner.run(shared, timeout=timeout_value, **options)
                finally:
                    if idx is not None:
                        async with done_lock:
                            done += 1
                            if progress_callback:
                                progress_callback(done, total)
                    queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(worker_count)]
        await queue.join()
        await asyncio.gather(*workers)

    if not runnable:
        if submitted and progress_callback:
            progress_callback(len(submitted), len(submitted))
        return [job for job in jobs if job is not None]
    if client is not None:
        await _execute(client)
    else:
        async with _make_client(timeout_value, max_workers) as own_client:
            await _execute(own_client)
    return [job for job in jobs if job is not None]
