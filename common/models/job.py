"""Job, volume and workload models."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class VolumeMode(str, Enum):
    """How a volume is presented to the workload."""
    FILESYSTEM = "filesystem"
    RAW_BLOCK = "raw_block"


class JobKind(str, Enum):
    """Soak job variants."""
    FILESYSTEM = "filesystem"
    RAW_BLOCK = "raw_block"
    DISRUPTOR = "disruptor"


class ShareProtocol(str, Enum):
    """Protocol used to share volumes to the application nodes."""
    NVMF = "nvmf"
    ISCSI = "iscsi"


class RestartPolicy(str, Enum):
    """Workload instance restart policy."""
    NEVER = "Never"
    ALWAYS = "Always"


class DutyCycle(BaseModel):
    """Think time pacing for fio."""
    think_time: int = Field(default=1, ge=0, description="Think time in microseconds")
    think_time_blocks: int = Field(default=1000, ge=1, description="Blocks between think times")


class StorageClassSpec(BaseModel):
    """Storage class shared by the jobs of one protocol and variant family."""
    name: str
    protocol: ShareProtocol
    replicas: int = Field(default=1, ge=1)
    namespace: str = "default"


class VolumeRequest(BaseModel):
    """Request for a single volume."""
    name: str
    storage_class: str
    size_mb: int = Field(..., ge=1)
    mode: VolumeMode = VolumeMode.FILESYSTEM
    namespace: str = "default"


class WorkloadDefinition(BaseModel):
    """Definition of a workload instance running fio against a volume."""
    name: str
    namespace: str = "default"
    volume_name: str
    volume_mode: VolumeMode
    image: str
    args: list[str] = Field(default_factory=list)
    node_selector: dict[str, str] = Field(default_factory=dict)
    restart_policy: RestartPolicy = RestartPolicy.NEVER


class JobIdentity(BaseModel):
    """Stable identity of a soak job."""
    id: int = Field(..., ge=0)
    kind: JobKind
    volume_name: str
    instance_name: str
    storage_class: str
    namespace: str = "default"
    fault_delay: Optional[int] = None

    @property
    def volume_mode(self) -> VolumeMode:
        """Volume mode used by this job's variant."""
        if self.kind == JobKind.FILESYSTEM:
            return VolumeMode.FILESYSTEM
        return VolumeMode.RAW_BLOCK
