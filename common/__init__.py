"""Common models and helpers shared by the soak engine and the CLI."""

from common.models.job import DutyCycle, JobIdentity, JobKind, VolumeMode
from common.models.soak import SoakConfig, SoakResult, JobError

__all__ = [
    "DutyCycle",
    "JobIdentity",
    "JobKind",
    "VolumeMode",
    "SoakConfig",
    "SoakResult",
    "JobError",
]
