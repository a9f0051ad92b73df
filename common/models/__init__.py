"""Common data models for the IO soak framework."""

from common.models.job import (
    VolumeMode,
    JobKind,
    ShareProtocol,
    RestartPolicy,
    DutyCycle,
    StorageClassSpec,
    VolumeRequest,
    WorkloadDefinition,
    JobIdentity,
)
from common.models.soak import SoakPhase, DisruptConfig, SoakConfig, JobError, SoakResult

__all__ = [
    "VolumeMode",
    "JobKind",
    "ShareProtocol",
    "RestartPolicy",
    "DutyCycle",
    "StorageClassSpec",
    "VolumeRequest",
    "WorkloadDefinition",
    "JobIdentity",
    "SoakPhase",
    "DisruptConfig",
    "SoakConfig",
    "JobError",
    "SoakResult",
]
