"""Orchestrator for IO soak sessions."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from common.messaging.signals import RunSignal, create_failed_signal
from common.models.job import JobKind
from common.models.soak import SoakConfig, SoakPhase, SoakResult
from common.utils import Timer, format_duration, generate_session_id
from soak.config import Settings, get_settings
from soak.core.aggregator import ResultAggregator
from soak.core.errors import OrchestratorStateError, SetupError, TeardownError
from soak.core.jobs import Job
from soak.core.population import build_population, referenced_storage_classes
from soak.core.readiness import ReadinessTracker
from soak.platform.base import WorkloadPlatform

logger = logging.getLogger(__name__)


class SoakOrchestrator:
    """Owns one soak population for its whole lifetime.

    ``setup``, ``run_soak`` and ``teardown`` are each callable once, in that
    order. Teardown may be called after a failed setup and removes whatever
    was created.
    """

    def __init__(
        self,
        config: SoakConfig,
        platform: WorkloadPlatform,
        settings: Optional[Settings] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config
        self.platform = platform
        self.settings = settings or get_settings()
        self.session_id = session_id or generate_session_id()
        self.phase = SoakPhase.INIT

        self.jobs: list[Job] = build_population(config, platform, self.settings)
        self.storage_classes = referenced_storage_classes(config, self.settings, self.jobs)
        self.namespaces: list[str] = []
        if any(job.identity.kind == JobKind.DISRUPTOR for job in self.jobs):
            self.namespaces.append(self.settings.disruptor_namespace)

        # Resources created and not yet removed
        self._created_classes: list[str] = []
        self._created_namespaces: list[str] = []
        self._created_volumes: set[str] = set()
        self._created_instances: set[str] = set()

        self._setup_started = False
        self._setup_complete = False
        self._run_started = False
        self._teardown_started = False
        self.teardown_warnings: list[str] = []

    # Setup

    async def setup(self) -> None:
        """Create classes, namespace, volumes and instances, then wait for readiness."""
        if self._setup_started:
            raise OrchestratorStateError("setup can only be called once")
        self._setup_started = True
        self.phase = SoakPhase.SETUP

        if not self.jobs:
            raise SetupError("population", "no jobs configured")

        logger.info(f"Setting up soak session {self.session_id} with {len(self.jobs)} jobs")

        await self._create_storage_classes()
        await self._create_namespaces()
        await self._create_volumes()
        await self._create_instances()

        self.phase = SoakPhase.READINESS
        tracker = ReadinessTracker(
            self.platform,
            self.jobs,
            allowance=self.settings.job_ready_allowance,
            floor=self.settings.readiness_timeout_floor,
            poll_interval=self.settings.readiness_poll_interval,
        )
        await tracker.wait()

        self._setup_complete = True
        logger.info(f"Setup complete for soak session {self.session_id}")

    async def _create_storage_classes(self) -> None:
        for spec in self.storage_classes:
            logger.info(f"Creating storage class {spec.name} ({spec.protocol.value}, {spec.replicas} replicas)")
            try:
                await self.platform.create_storage_class(spec)
            except Exception as e:
                raise SetupError("storage class", f"creating {spec.name}: {e}", resource=spec.name) from e
            self._created_classes.append(spec.name)

    async def _create_namespaces(self) -> None:
        for namespace in self.namespaces:
            logger.info(f"Creating namespace {namespace}")
            try:
                await self.platform.create_namespace(namespace)
            except Exception as e:
                raise SetupError("namespace", f"creating {namespace}: {e}", resource=namespace) from e
            self._created_namespaces.append(namespace)

    async def _create_volumes(self) -> None:
        results = await asyncio.gather(
            *(job.make_volume() for job in self.jobs),
            return_exceptions=True,
        )

        failed = []
        for job, result in zip(self.jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"Volume creation failed for {job.name}: {result}")
                failed.append(f"{job.identity.volume_name}: {result}")
            else:
                self._created_volumes.add(job.name)

        if failed:
            raise SetupError("volume", f"failed to create {len(failed)} volume(s): {'; '.join(failed)}")

    async def _create_instances(self) -> None:
        node_selector = self.config.node_selector
        results = await asyncio.gather(
            *(job.make_workload_instance(node_selector) for job in self.jobs),
            return_exceptions=True,
        )

        failed = []
        for job, result in zip(self.jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"Workload instance creation failed for {job.name}: {result}")
                failed.append(f"{job.name}: {result}")
            else:
                self._created_instances.add(job.name)

        if failed:
            raise SetupError(
                "workload instance",
                f"failed to create {len(failed)} instance(s): {'; '.join(failed)}",
            )

    # Run

    async def run_soak(self, duration: Optional[int] = None) -> SoakResult:
        """Run every job concurrently for ``duration`` seconds and aggregate the signals.

        ``duration`` defaults to the configured duration. An override only
        applies to the I/O run inside each instance; instance arguments such
        as the soak job ``--runtime`` were fixed from the configuration at
        setup.
        """
        if not self._setup_complete:
            raise OrchestratorStateError("run_soak requires a successful setup")
        if self._run_started:
            raise OrchestratorStateError("run_soak can only be called once")
        self._run_started = True
        self.phase = SoakPhase.RUNNING

        if duration is None:
            duration = self.config.duration
        deadline = duration + self.settings.run_grace_seconds
        started_at = datetime.utcnow()

        done_queue: asyncio.Queue[RunSignal] = asyncio.Queue(maxsize=len(self.jobs))
        err_queue: asyncio.Queue[RunSignal] = asyncio.Queue(maxsize=len(self.jobs))
        aggregator = ResultAggregator([job.name for job in self.jobs], done_queue, err_queue)

        logger.info(f"Running {len(self.jobs)} jobs for {format_duration(duration)}")

        with Timer() as timer:
            workers = [
                asyncio.create_task(self._run_worker(job, duration, done_queue, err_queue))
                for job in self.jobs
            ]
            try:
                await aggregator.collect(timeout=deadline, workers=workers)
            finally:
                stragglers = [worker for worker in workers if not worker.done()]
                for worker in stragglers:
                    worker.cancel()
                if stragglers:
                    logger.warning(f"Cancelling {len(stragglers)} workers still running after {deadline}s")
                await asyncio.gather(*workers, return_exceptions=True)

        result = SoakResult(
            session_id=self.session_id,
            passed=aggregator.passed,
            completed=aggregator.completed,
            errors=aggregator.errors,
            started_at=started_at,
            finished_at=datetime.utcnow(),
            elapsed_seconds=timer.elapsed_seconds,
        )

        if result.passed:
            logger.info(f"Soak run passed: {len(result.completed)} jobs completed in {format_duration(timer.elapsed_seconds)}")
        else:
            logger.error(f"Soak run failed: {result.error_count} of {len(self.jobs)} jobs reported errors")
            for error in result.errors:
                logger.error(f"  {error.job}: {error.cause}")

        return result

    async def _run_worker(
        self,
        job: Job,
        duration: int,
        done_queue: asyncio.Queue[RunSignal],
        err_queue: asyncio.Queue[RunSignal],
    ) -> None:
        try:
            await job.run(duration, done_queue, err_queue)
        except Exception as e:
            logger.error(f"Worker for {job.name} crashed: {e}", exc_info=True)
            err_queue.put_nowait(create_failed_signal(job.name, f"worker crashed: {e}"))

    # Teardown

    async def teardown(self) -> None:
        """Remove every created resource, attempting each removal even after failures.

        Instances go first, then volumes, then storage classes and namespaces
        with nothing left in them. A resource whose dependants could not be
        removed is left in place and reported.
        """
        if self._teardown_started:
            raise OrchestratorStateError("teardown can only be called once")
        self._teardown_started = True
        self.phase = SoakPhase.TEARDOWN

        logger.info(f"Tearing down soak session {self.session_id}")

        await self._remove_instances()
        await self._remove_volumes()
        await self._remove_storage_classes()
        await self._remove_namespaces()

        self.phase = SoakPhase.DONE

        if self.teardown_warnings:
            raise TeardownError(self.teardown_warnings)
        logger.info(f"Teardown complete for soak session {self.session_id}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.teardown_warnings.append(message)

    async def _remove_instances(self) -> None:
        jobs = [job for job in self.jobs if job.name in self._created_instances]
        results = await asyncio.gather(
            *(job.remove_workload_instance() for job in jobs),
            return_exceptions=True,
        )
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                self._warn(f"Failed to remove workload instance {job.name}: {result}")
            else:
                self._created_instances.discard(job.name)

    async def _remove_volumes(self) -> None:
        jobs = []
        for job in self.jobs:
            if job.name not in self._created_volumes:
                continue
            if job.name in self._created_instances:
                self._warn(f"Skipping volume {job.identity.volume_name}: workload instance still present")
                continue
            jobs.append(job)

        results = await asyncio.gather(
            *(job.remove_volume() for job in jobs),
            return_exceptions=True,
        )
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                self._warn(f"Failed to remove volume {job.identity.volume_name}: {result}")
            else:
                self._created_volumes.discard(job.name)

    async def _remove_storage_classes(self) -> None:
        for sc_name in list(self._created_classes):
            remaining = [
                job.identity.volume_name for job in self.jobs
                if job.identity.storage_class == sc_name and job.name in self._created_volumes
            ]
            if remaining:
                self._warn(f"Skipping storage class {sc_name}: volumes still present: {', '.join(remaining)}")
                continue

            logger.info(f"Removing storage class {sc_name}")
            try:
                await self.platform.delete_storage_class(sc_name)
            except Exception as e:
                self._warn(f"Failed to remove storage class {sc_name}: {e}")
                continue
            self._created_classes.remove(sc_name)

    async def _remove_namespaces(self) -> None:
        for namespace in list(self._created_namespaces):
            remaining = [
                job.name for job in self.jobs
                if job.namespace == namespace
                and (job.name in self._created_instances or job.name in self._created_volumes)
            ]
            if remaining:
                self._warn(f"Skipping namespace {namespace}: resources still present for {', '.join(remaining)}")
                continue

            logger.info(f"Removing namespace {namespace}")
            try:
                await self.platform.delete_namespace(namespace)
            except Exception as e:
                self._warn(f"Failed to remove namespace {namespace}: {e}")
                continue
            self._created_namespaces.remove(namespace)

    # Convenience

    async def run(self, duration: Optional[int] = None) -> SoakResult:
        """Setup, run and teardown, with teardown always attempted.

        Setup errors propagate after teardown. Teardown errors are attached
        to the result as warnings.
        """
        try:
            await self.setup()
            result = await self.run_soak(duration)
        finally:
            try:
                await self.teardown()
            except TeardownError as e:
                logger.warning(f"Teardown incomplete: {e}")

        result.teardown_warnings = list(self.teardown_warnings)
        return result

    def get_state(self) -> dict:
        """Get current session state."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "jobs": [
                {
                    "name": job.name,
                    "kind": job.identity.kind.value,
                    "storage_class": job.identity.storage_class,
                    "namespace": job.namespace,
                    "ready": job.ready,
                }
                for job in self.jobs
            ],
            "storage_classes": [spec.name for spec in self.storage_classes],
            "namespaces": list(self.namespaces),
            "created": {
                "storage_classes": len(self._created_classes),
                "namespaces": len(self._created_namespaces),
                "volumes": len(self._created_volumes),
                "instances": len(self._created_instances),
            },
        }
