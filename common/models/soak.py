"""Soak population configuration and result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from common.models.job import DutyCycle, ShareProtocol


class SoakPhase(str, Enum):
    """Current orchestrator phase."""
    INIT = "init"
    SETUP = "setup"
    READINESS = "readiness"
    RUNNING = "running"
    TEARDOWN = "teardown"
    DONE = "done"


class DisruptConfig(BaseModel):
    """Disruptor job configuration."""
    pod_count: int = Field(default=0, ge=0, description="Number of disruptor jobs")
    fault_after: int = Field(default=10, ge=1, description="Seconds before the fault is injected")


class SoakConfig(BaseModel):
    """Population config for one soak session."""
    protocols: list[ShareProtocol] = Field(
        default_factory=lambda: [ShareProtocol.NVMF],
        min_length=1,
    )
    replicas: int = Field(default=1, ge=1, description="Replicas per volume")

    # Population
    filesystem_jobs: int = Field(default=0, ge=0)
    raw_block_jobs: int = Field(default=0, ge=0)
    disrupt: DisruptConfig = Field(default_factory=DisruptConfig)

    # Pacing
    duty_cycles: list[DutyCycle] = Field(default_factory=list)

    # Run
    duration: int = Field(default=600, ge=1, description="Soak duration in seconds")
    node_selector: dict[str, str] = Field(default_factory=lambda: {"e2e-app": "true"})

    @property
    def soak_job_count(self) -> int:
        return self.filesystem_jobs + self.raw_block_jobs

    @property
    def total_jobs(self) -> int:
        return self.soak_job_count + self.disrupt.pod_count


class JobError(BaseModel):
    """A single job failure reported during the run phase."""
    job: str
    cause: str


class SoakResult(BaseModel):
    """Outcome of a soak run."""
    session_id: str
    passed: bool
    completed: list[str] = Field(default_factory=list)
    errors: list[JobError] = Field(default_factory=list)
    teardown_warnings: list[str] = Field(default_factory=list)

    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    elapsed_seconds: float = 0

    @property
    def error_count(self) -> int:
        return len(self.errors)
