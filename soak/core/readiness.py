"""Readiness tracking for a soak population."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from soak.core.errors import ReadinessTimeoutError
from soak.core.jobs import Job
from soak.platform.base import WorkloadPlatform

logger = logging.getLogger(__name__)


def readiness_timeout(job_count: int, allowance: int, floor: int = 60) -> int:
    """Readiness timeout in ticks: ``allowance`` per job, never below ``floor``."""
    return max(floor, allowance * job_count)


class ReadinessTracker:
    """Wait until every job has been observed running at least once.

    Disruptor instances restart by design, so a job is latched ready on the
    first tick its instance is seen running and is not polled again.
    """

    def __init__(
        self,
        platform: WorkloadPlatform,
        jobs: Sequence[Job],
        allowance: int = 20,
        floor: int = 60,
        poll_interval: float = 1.0,
    ):
        self.platform = platform
        self.jobs = list(jobs)
        self.poll_interval = poll_interval
        self.timeout = readiness_timeout(len(self.jobs), allowance, floor)
        self.ticks = 0

    @property
    def not_ready(self) -> list[Job]:
        return [job for job in self.jobs if not job.ready]

    @property
    def all_ready(self) -> bool:
        return all(job.ready for job in self.jobs)

    async def poll_once(self) -> bool:
        """Poll every job that is not yet ready. Returns True once all are ready."""
        for job in self.not_ready:
            try:
                running = await self.platform.is_running(job.get_identity(), job.namespace)
            except Exception as e:
                logger.warning(f"Status query failed for {job.get_identity()}: {e}")
                running = False

            if running:
                job.mark_ready()
                logger.info(f"Job {job.get_identity()} is ready")

        return self.all_ready

    async def wait(self) -> None:
        """Poll once per interval until all jobs are ready or the timeout elapses."""
        logger.info(
            f"Waiting for {len(self.jobs)} jobs to be ready, timeout {self.timeout} polls "
            f"of {self.poll_interval:g}s"
        )

        while self.ticks < self.timeout:
            await asyncio.sleep(self.poll_interval)
            self.ticks += 1
            if await self.poll_once():
                logger.info(f"All {len(self.jobs)} jobs ready after {self.ticks} polls")
                return

        not_ready = [job.get_identity() for job in self.not_ready]
        logger.error(f"Timeout waiting for jobs to be ready: {not_ready}")
        raise ReadinessTimeoutError(self.timeout, not_ready, self.poll_interval)
