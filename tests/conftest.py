"""Pytest configuration and shared fixtures."""

import asyncio
import tempfile
import shutil
from collections import Counter
from pathlib import Path
from typing import Generator

import pytest

import soak.config
from common.models.job import (
    DutyCycle,
    StorageClassSpec,
    VolumeMode,
    VolumeRequest,
    WorkloadDefinition,
)
from common.models.soak import SoakConfig
from soak.config import Settings, init_settings
from soak.core.errors import PlatformError
from soak.platform.base import WorkloadPlatform


class FakePlatform(WorkloadPlatform):
    """In-memory workload platform.

    Enforces removal ordering: a volume cannot be deleted while its instance
    exists, a storage class while its volumes exist, a namespace while it
    holds volumes or instances. Deleting something absent fails.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.storage_classes: dict[str, StorageClassSpec] = {}
        self.namespaces: set[str] = {"default"}
        self.volumes: dict[str, VolumeRequest] = {}
        self.instances: dict[str, WorkloadDefinition] = {}

        self.status_queries: Counter = Counter()
        self.statuses: dict[str, list[bool]] = {}
        self.default_running = True

        self.soak_runs: list[tuple[str, int, DutyCycle, VolumeMode]] = []
        self.soak_failures: dict[str, str] = {}
        self.soak_delays: dict[str, float] = {}

        self.failures: dict[tuple[str, str], str] = {}

    def fail(self, operation: str, name: str, message: str = "injected failure") -> None:
        self.failures[(operation, name)] = message

    def _call(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        if (operation, name) in self.failures:
            raise PlatformError(operation, name, self.failures[(operation, name)])

    def calls_for(self, operation: str) -> list[str]:
        return [name for op, name in self.calls if op == operation]

    async def create_storage_class(self, spec: StorageClassSpec) -> None:
        self._call("create_storage_class", spec.name)
        self.storage_classes[spec.name] = spec

    async def delete_storage_class(self, name: str) -> None:
        self._call("delete_storage_class", name)
        if name not in self.storage_classes:
            raise PlatformError("delete_storage_class", name, "not found")
        if any(v.storage_class == name for v in self.volumes.values()):
            raise PlatformError("delete_storage_class", name, "volumes still reference it")
        del self.storage_classes[name]

    async def create_volume(self, request: VolumeRequest) -> None:
        self._call("create_volume", request.name)
        if request.storage_class not in self.storage_classes:
            raise PlatformError("create_volume", request.name, "unknown storage class")
        if request.namespace not in self.namespaces:
            raise PlatformError("create_volume", request.name, "unknown namespace")
        self.volumes[request.name] = request

    async def delete_volume(self, name: str, namespace: str) -> None:
        self._call("delete_volume", name)
        if name not in self.volumes:
            raise PlatformError("delete_volume", name, "not found")
        if any(d.volume_name == name for d in self.instances.values()):
            raise PlatformError("delete_volume", name, "still in use")
        del self.volumes[name]

    async def create_workload_instance(self, definition: WorkloadDefinition) -> str:
        self._call("create_workload_instance", definition.name)
        self.instances[definition.name] = definition
        return definition.name

    async def delete_workload_instance(self, name: str, namespace: str) -> None:
        self._call("delete_workload_instance", name)
        if name not in self.instances:
            raise PlatformError("delete_workload_instance", name, "not found")
        del self.instances[name]

    async def is_running(self, name: str, namespace: str) -> bool:
        self.status_queries[name] += 1
        self._call("is_running", name)
        pattern = self.statuses.get(name)
        if pattern:
            return pattern.pop(0)
        return self.default_running

    async def create_namespace(self, name: str) -> None:
        self._call("create_namespace", name)
        self.namespaces.add(name)

    async def delete_namespace(self, name: str) -> None:
        self._call("delete_namespace", name)
        if name not in self.namespaces:
            raise PlatformError("delete_namespace", name, "not found")
        if any(v.namespace == name for v in self.volumes.values()) or any(
            d.namespace == name for d in self.instances.values()
        ):
            raise PlatformError("delete_namespace", name, "not empty")
        self.namespaces.discard(name)

    async def run_soak_io(
        self,
        instance: str,
        namespace: str,
        duration: int,
        duty_cycle: DutyCycle,
        volume_mode: VolumeMode,
    ) -> None:
        self._call("run_soak_io", instance)
        self.soak_runs.append((instance, duration, duty_cycle, volume_mode))
        delay = self.soak_delays.get(instance)
        if delay:
            await asyncio.sleep(delay)
        if instance in self.soak_failures:
            raise PlatformError("run_soak_io", instance, self.soak_failures[instance])


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Settings with a shrunken time unit, installed as the global instance."""
    yield init_settings(
        registry="registry.test:5000",
        readiness_poll_interval=0.001,
        run_grace_seconds=2,
    )
    soak.config._settings = None


@pytest.fixture
def platform() -> FakePlatform:
    """Create an in-memory workload platform."""
    return FakePlatform()


@pytest.fixture
def sample_soak_config() -> SoakConfig:
    """Small mixed population."""
    return SoakConfig(
        protocols=["nvmf", "iscsi"],
        replicas=1,
        filesystem_jobs=2,
        raw_block_jobs=1,
        disrupt={"pod_count": 2, "fault_after": 10},
        duration=30,
    )


@pytest.fixture
def sample_config_dict() -> dict:
    """Population config as it appears in a YAML file."""
    return {
        "protocols": ["nvmf"],
        "replicas": 2,
        "filesystem_jobs": 3,
        "raw_block_jobs": 0,
        "disrupt": {"pod_count": 1, "fault_after": 5},
        "duty_cycles": [
            {"think_time": 500, "think_time_blocks": 1000},
            {"think_time": 10, "think_time_blocks": 100},
        ],
        "duration": 60,
    }
