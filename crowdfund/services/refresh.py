"""
Periodic refresh of shared read-only snapshots.

Each job is a named asyncio task with a fixed interval. Jobs are read-only
and idempotent, so a failed tick is logged and the next tick runs on
schedule; there is no backoff and no coordination between jobs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional


RefreshFn = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class RefreshJob:
    name: str
    interval_seconds: float
    fn: RefreshFn
    run_count: int = 0
    last_value: Any = None
    last_refreshed: Optional[datetime] = None
    last_error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def has_value(self) -> bool:
        return self.last_refreshed is not None


class RefreshScheduler:
    """Explicit start/stop owner of the background refresh tasks."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("refresh")
        self._jobs: Dict[str, RefreshJob] = {}
        self._lock = asyncio.Lock()
        self._running = False

    # ---------------------------
    # Registration
    # ---------------------------
    def register(self, name: str, fn: RefreshFn, interval_seconds: float) -> RefreshJob:
        if name in self._jobs:
            raise ValueError(f"Refresh job '{name}' already registered")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        job = RefreshJob(name=name, interval_seconds=interval_seconds, fn=fn)
        self._jobs[name] = job
        if self._running:
            job.task = asyncio.create_task(self._run_job(job), name=f"refresh-{name}")
        self.logger.info("Registered refresh job %s every %ss", name, interval_seconds)
        return job

    def get(self, name: str) -> Optional[RefreshJob]:
        return self._jobs.get(name)

    def snapshot(self, name: str) -> Any:
        """Last successful value of a job, or None if it has not produced one."""
        job = self._jobs.get(name)
        return job.last_value if job and job.has_value else None

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def start(self) -> None:
        async with self._lock:
            if self._running:
                return
            self._running = True
            self.logger.info("Refresh scheduler starting with %d jobs", len(self._jobs))
            for job in self._jobs.values():
                job.task = asyncio.create_task(self._run_job(job), name=f"refresh-{job.name}")

    async def stop(self) -> None:
        async with self._lock:
            if not self._running:
                return
            self._running = False
            self.logger.info("Refresh scheduler stopping")

            tasks = [job.task for job in self._jobs.values() if job.task]
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            for job in self._jobs.values():
                job.task = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def refresh_now(self, name: str) -> Any:
        """Run one job immediately, outside its schedule."""
        job = self._jobs[name]
        await self._tick(job)
        return job.last_value

    # ---------------------------
    # Execution
    # ---------------------------
    async def _run_job(self, job: RefreshJob) -> None:
        try:
            while self._running:
                await self._tick(job)
                await asyncio.sleep(job.interval_seconds)
        except asyncio.CancelledError:
            return

    async def _tick(self, job: RefreshJob) -> None:
        try:
            job.last_value = await job.fn()
            job.last_refreshed = datetime.now(timezone.utc)
            job.last_error = None
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            job.last_error = str(exc)
            self.logger.warning("Refresh job %s failed: %s", job.name, exc, exc_info=True)
        finally:
            job.run_count += 1

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "jobs": {
                name: {
                    "intervalSeconds": job.interval_seconds,
                    "runCount": job.run_count,
                    "lastRefreshed": job.last_refreshed.isoformat() if job.last_refreshed else None,
                    "lastError": job.last_error,
                }
                for name, job in self._jobs.items()
            },
        }
