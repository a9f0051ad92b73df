"""Core soak engine: jobs, readiness, aggregation and orchestration."""

from soak.core.orchestrator import SoakOrchestrator
from soak.core.errors import (
    SoakError,
    PlatformError,
    SetupError,
    ReadinessTimeoutError,
    TeardownError,
    OrchestratorStateError,
)

__all__ = [
    "SoakOrchestrator",
    "SoakError",
    "PlatformError",
    "SetupError",
    "ReadinessTimeoutError",
    "TeardownError",
    "OrchestratorStateError",
]
