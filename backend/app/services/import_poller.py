"""
import_poller.py — Client-side polling of asynchronous import jobs.

Polls ``GET /api/import/{job_id}`` at a fixed interval until the job reaches a
terminal state, with two hard limits: a maximum number of attempts and an
idle timeout (wall-clock seconds without seeing a terminal state).  Either
limit raises PollTimeout; the caller can also cancel the task returned by
``start``.

Progress is a heuristic for display only: 10 after the first unfinished poll,
+10 per further poll capped at 90, 100 once the job completes.  It is not
derived from parser progress.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from app import config

logger = logging.getLogger("passport-import.poller")

PROGRESS_START = 10
PROGRESS_STEP = 10
PROGRESS_CAP = 90


class PollTimeout(Exception):
    def __init__(self, job_id: int, attempts: int, reason: str):
        self.job_id = job_id
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"Import job {job_id} not finished after {attempts} polls ({reason})")


@dataclass
class PollResult:
    job_id: int
    status: str
    attempts: int
    progress: int
    result_data: Any = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


def next_progress(current: int) -> int:
    if current <= 0:
        return PROGRESS_START
    return min(current + PROGRESS_STEP, PROGRESS_CAP)


class ImportJobPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        idle_timeout_seconds: Optional[float] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self.client = client
        self.interval_seconds = config.POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.max_attempts = config.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.idle_timeout_seconds = (
            config.POLL_IDLE_TIMEOUT_SECONDS if idle_timeout_seconds is None else idle_timeout_seconds
        )
        self.on_progress = on_progress
        self.progress = 0

    def _report(self, value: int) -> None:
        self.progress = value
        if self.on_progress is not None:
            self.on_progress(value)

    async def fetch(self, job_id: int) -> dict:
        response = await self.client.get(f"/api/import/{job_id}")
        response.raise_for_status()
        return response.json()

    async def wait(self, job_id: int) -> PollResult:
        """Poll until the job is completed or failed, or a limit is hit."""
        started = time.monotonic()
        attempts = 0
        self.progress = 0
        while True:
            attempts += 1
            job = await self.fetch(job_id)
            status = job.get("status")

            if status == "completed":
                self._report(100)
                return PollResult(job_id, status, attempts, self.progress, result_data=job.get("resultData"))
            if status == "failed":
                return PollResult(
                    job_id, status, attempts, self.progress,
                    error_message=job.get("errorMessage") or "Import failed",
                )

            self._report(next_progress(self.progress))
            if attempts >= self.max_attempts:
                raise PollTimeout(job_id, attempts, "max attempts reached")
            if time.monotonic() - started >= self.idle_timeout_seconds:
                raise PollTimeout(job_id, attempts, "idle timeout")
            await asyncio.sleep(self.interval_seconds)

    def start(self, job_id: int) -> "asyncio.Task[PollResult]":
        """Run ``wait`` as a task the caller can cancel."""
        return asyncio.create_task(self.wait(job_id), name=f"poll-import-{job_id}")
