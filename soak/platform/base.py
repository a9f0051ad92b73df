"""Workload platform interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from common.models.job import (
    DutyCycle,
    StorageClassSpec,
    VolumeMode,
    VolumeRequest,
    WorkloadDefinition,
)


class WorkloadPlatform(ABC):
    """Provides storage class, volume, workload instance and namespace lifecycle.

    Implementations raise ``PlatformError`` when an operation is rejected.
    """

    @abstractmethod
    async def create_storage_class(self, spec: StorageClassSpec) -> None:
        ...

    @abstractmethod
    async def delete_storage_class(self, name: str) -> None:
        ...

    @abstractmethod
    async def create_volume(self, request: VolumeRequest) -> None:
        ...

    @abstractmethod
    async def delete_volume(self, name: str, namespace: str) -> None:
        ...

    @abstractmethod
    async def create_workload_instance(self, definition: WorkloadDefinition) -> str:
        """Create a workload instance and return its handle (the instance name)."""

    @abstractmethod
    async def delete_workload_instance(self, name: str, namespace: str) -> None:
        ...

    @abstractmethod
    async def is_running(self, name: str, namespace: str) -> bool:
        """Check whether the workload instance is currently running."""

    @abstractmethod
    async def create_namespace(self, name: str) -> None:
        ...

    @abstractmethod
    async def delete_namespace(self, name: str) -> None:
        ...

    @abstractmethod
    async def run_soak_io(
        self,
        instance: str,
        namespace: str,
        duration: int,
        duty_cycle: DutyCycle,
        volume_mode: VolumeMode,
    ) -> None:
        """Run soak I/O in a workload instance for ``duration`` seconds.

        Returns when the I/O completes successfully, raises on failure.
        """
