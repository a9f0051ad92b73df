"""Soak job variants."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from common.messaging.signals import RunSignal, create_done_signal, create_failed_signal
from common.models.job import (
    DutyCycle,
    JobIdentity,
    JobKind,
    RestartPolicy,
    VolumeMode,
    VolumeRequest,
    WorkloadDefinition,
)
from soak.config import Settings
from soak.core.duty_cycle import select_duty_cycle
from soak.platform.base import WorkloadPlatform

logger = logging.getLogger(__name__)

# The restarted disruptor instance keeps running this long after the fault
DISRUPTOR_RUNTIME_EXTRA = 100


class Job(ABC):
    """One soak unit owning a volume and a workload instance."""

    kind: JobKind
    name_prefix: str

    def __init__(
        self,
        job_id: int,
        storage_class: str,
        platform: WorkloadPlatform,
        settings: Settings,
        duty_cycles: Sequence[DutyCycle] = (),
        namespace: Optional[str] = None,
    ):
        name = f"{self.name_prefix}-{storage_class}-{job_id}"
        self.identity = JobIdentity(
            id=job_id,
            kind=self.kind,
            volume_name=name,
            instance_name=name,
            storage_class=storage_class,
            namespace=namespace or settings.default_namespace,
        )
        self.platform = platform
        self.settings = settings
        self.duty_cycles = tuple(duty_cycles)
        self._ready = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, ready={self._ready})"

    @property
    def id(self) -> int:
        return self.identity.id

    @property
    def name(self) -> str:
        return self.identity.instance_name

    @property
    def namespace(self) -> str:
        return self.identity.namespace

    @property
    def volume_mode(self) -> VolumeMode:
        return self.identity.volume_mode

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        """Latch the job as ready. The latch never resets."""
        self._ready = True

    def get_identity(self) -> str:
        """Stable workload instance name used for polling and logging."""
        return self.identity.instance_name

    @property
    def duty_cycle(self) -> DutyCycle:
        return select_duty_cycle(self.id, self.duty_cycles)

    @property
    def restart_policy(self) -> RestartPolicy:
        return RestartPolicy.NEVER

    @abstractmethod
    def build_args(self) -> list[str]:
        """Build the workload instance's argument list."""

    async def make_volume(self) -> None:
        request = VolumeRequest(
            name=self.identity.volume_name,
            storage_class=self.identity.storage_class,
            size_mb=self.settings.volume_size_mb,
            mode=self.volume_mode,
            namespace=self.namespace,
        )
        logger.info(f"Creating volume {request.name} ({request.mode.value}, {request.size_mb}MiB)")
        await self.platform.create_volume(request)

    async def remove_volume(self) -> None:
        logger.info(f"Removing volume {self.identity.volume_name}")
        await self.platform.delete_volume(self.identity.volume_name, self.namespace)

    def build_workload_definition(self, node_selector: dict[str, str]) -> WorkloadDefinition:
        return WorkloadDefinition(
            name=self.name,
            namespace=self.namespace,
            volume_name=self.identity.volume_name,
            volume_mode=self.volume_mode,
            image=self.settings.image,
            args=self.build_args(),
            node_selector=dict(node_selector),
            restart_policy=self.restart_policy,
        )

    async def make_workload_instance(self, node_selector: dict[str, str]) -> str:
        definition = self.build_workload_definition(node_selector)
        logger.info(f"Creating workload instance {definition.name}")
        return await self.platform.create_workload_instance(definition)

    async def remove_workload_instance(self) -> None:
        logger.info(f"Removing workload instance {self.name}")
        await self.platform.delete_workload_instance(self.name, self.namespace)

    async def run(
        self,
        duration: int,
        done_queue: asyncio.Queue[RunSignal],
        err_queue: asyncio.Queue[RunSignal],
    ) -> None:
        """Run soak I/O for ``duration`` seconds and emit one terminal signal."""
        duty_cycle = self.duty_cycle
        logger.info(
            f"Running {self.name} for {duration}s "
            f"(thinktime={duty_cycle.think_time}, thinktime_blocks={duty_cycle.think_time_blocks})"
        )

        try:
            await self.platform.run_soak_io(
                self.name,
                self.namespace,
                duration,
                duty_cycle,
                self.volume_mode,
            )
        except Exception as e:
            cause = str(e) or type(e).__name__
            logger.error(f"Soak IO failed on {self.name}: {cause}")
            err_queue.put_nowait(create_failed_signal(self.name, cause))
            return

        logger.info(f"Soak IO completed on {self.name}")
        done_queue.put_nowait(create_done_signal(self.name))

    def _fio_pacing_args(self, filename: str) -> list[str]:
        duty_cycle = self.duty_cycle
        return [
            f"--filename={filename}",
            f"--thinktime={duty_cycle.think_time}",
            f"--thinktime_blocks={duty_cycle.think_time_blocks}",
        ]


class FilesystemSoakJob(Job):
    """Soak job running fio against a file on a filesystem volume."""

    kind = JobKind.FILESYSTEM
    name_prefix = "fio-filesystem"

    def __init__(self, job_id: int, storage_class: str, duration: int, platform: WorkloadPlatform,
                 settings: Settings, duty_cycles: Sequence[DutyCycle] = ()):
        super().__init__(job_id, storage_class, platform, settings, duty_cycles)
        self.duration = duration

    def build_args(self) -> list[str]:
        args = ["--", "--time_based", f"--runtime={self.duration}"]
        args.extend(self._fio_pacing_args(self.settings.fs_filename))
        args.append(f"--size={self.settings.fio_size_mb}m")
        args.extend(self.settings.fio_args)
        return args


class RawBlockSoakJob(Job):
    """Soak job running fio directly against a raw block volume."""

    kind = JobKind.RAW_BLOCK
    name_prefix = "fio-rawblock"

    def __init__(self, job_id: int, storage_class: str, duration: int, platform: WorkloadPlatform,
                 settings: Settings, duty_cycles: Sequence[DutyCycle] = ()):
        super().__init__(job_id, storage_class, platform, settings, duty_cycles)
        self.duration = duration

    def build_args(self) -> list[str]:
        args = ["--", "--time_based", f"--runtime={self.duration}"]
        args.extend(self._fio_pacing_args(self.settings.block_filename))
        args.extend(self.settings.fio_args)
        return args


class DisruptorJob(Job):
    """Raw block job whose fio process is killed after a delay and restarted.

    The instance restarts automatically; the fault is expected behavior.
    """

    kind = JobKind.DISRUPTOR
    name_prefix = "fio-disruptor"

    def __init__(self, job_id: int, storage_class: str, fault_delay: int, platform: WorkloadPlatform,
                 settings: Settings, duty_cycles: Sequence[DutyCycle] = ()):
        super().__init__(
            job_id, storage_class, platform, settings, duty_cycles,
            namespace=settings.disruptor_namespace,
        )
        self.fault_delay = fault_delay
        self.identity.fault_delay = fault_delay

    @property
    def restart_policy(self) -> RestartPolicy:
        return RestartPolicy.ALWAYS

    def build_args(self) -> list[str]:
        args = [
            "segfault-after",
            str(self.fault_delay),
            "--",
            "--time_based",
            f"--runtime={self.fault_delay + DISRUPTOR_RUNTIME_EXTRA}",
        ]
        args.extend(self._fio_pacing_args(self.settings.block_filename))
        args.extend(self.settings.fio_args)
        return args
