"""Aggregation of run signals into a soak verdict."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence

from common.messaging.signals import RunSignal
from common.models.soak import JobError

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Collect one terminal signal per job from the done and error queues.

    Collection ends when every expected job has signalled or when the
    deadline passes. Jobs that never signalled are reported as failures.
    """

    def __init__(
        self,
        expected: Sequence[str],
        done_queue: asyncio.Queue[RunSignal],
        err_queue: asyncio.Queue[RunSignal],
    ):
        self.expected = list(expected)
        self.done_queue = done_queue
        self.err_queue = err_queue
        self.completed: list[str] = []
        self.errors: list[JobError] = []
        self._seen: set[str] = set()

    @property
    def pending(self) -> list[str]:
        return [job for job in self.expected if job not in self._seen]

    @property
    def passed(self) -> bool:
        return not self.errors

    def _record(self, signal: RunSignal) -> None:
        if signal.job in self._seen:
            logger.warning(f"Duplicate {signal.type.value} signal from {signal.job} ignored")
            return
        self._seen.add(signal.job)

        if signal.failed:
            self.errors.append(JobError(job=signal.job, cause=signal.cause or "unknown error"))
        else:
            self.completed.append(signal.job)

    def drain(self) -> int:
        """Record every signal already queued without waiting."""
        count = 0
        for queue in (self.done_queue, self.err_queue):
            while not queue.empty():
                self._record(queue.get_nowait())
                count += 1
        return count

    async def _next_signal(
        self,
        timeout: Optional[float],
        workers_done: Optional[asyncio.Future] = None,
    ) -> bool:
        done_get = asyncio.ensure_future(self.done_queue.get())
        err_get = asyncio.ensure_future(self.err_queue.get())
        waiting = {done_get, err_get}
        if workers_done is not None:
            waiting.add(workers_done)
        finished, _ = await asyncio.wait(
            waiting,
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        gets = [task for task in (done_get, err_get) if not task.done()]
        for task in gets:
            task.cancel()
        await asyncio.gather(*gets, return_exceptions=True)

        for task in (done_get, err_get):
            if task.done() and not task.cancelled():
                self._record(task.result())
        return bool(finished)

    async def collect(
        self,
        timeout: Optional[float] = None,
        workers: Optional[Sequence[asyncio.Task]] = None,
    ) -> None:
        """Wait for a signal from every expected job, up to ``timeout`` seconds.

        When ``workers`` is given, collection also stops once every worker
        task has finished, since no further signal can arrive.
        """
        loop_deadline = None if timeout is None else time.monotonic() + timeout
        workers_done = asyncio.ensure_future(asyncio.wait(list(workers))) if workers else None

        try:
            self.drain()
            while self.pending:
                if workers_done is not None and workers_done.done():
                    break
                remaining = None
                if loop_deadline is not None:
                    remaining = loop_deadline - time.monotonic()
                    if remaining <= 0:
                        break
                if not await self._next_signal(remaining, workers_done):
                    break
        finally:
            if workers_done is not None and not workers_done.done():
                workers_done.cancel()

        # Signals racing the deadline are still counted
        self.drain()

        exited = workers_done is not None and workers_done.done() and not workers_done.cancelled()
        for job in self.pending:
            if exited:
                cause = "worker exited without a completion signal"
            elif timeout is not None:
                cause = f"no completion signal within {timeout:.0f}s"
            else:
                cause = "no completion signal received"
            logger.error(f"Job {job}: {cause}")
            self.errors.append(JobError(job=job, cause=cause))
            self._seen.add(job)

        logger.info(
            f"Collected {len(self.completed)} completions and {len(self.errors)} errors "
            f"from {len(self.expected)} jobs"
        )
