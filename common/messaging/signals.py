"""Run signal definitions for the soak run phase."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """Terminal outcomes of a job's run."""

    DONE = "job.done"
    FAILED = "job.failed"


class RunSignal(BaseModel):
    """Terminal signal emitted once by each job per run phase."""

    type: SignalType = Field(..., description="Signal type")
    job: str = Field(..., description="Identity of the job (workload instance name)")
    cause: Optional[str] = Field(default=None, description="Failure cause for failed jobs")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @property
    def failed(self) -> bool:
        return self.type == SignalType.FAILED

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "type": self.type.value,
            "job": self.job,
            "cause": self.cause,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict) -> "RunSignal":
        """Create signal from JSON dict."""
        return cls(
            type=SignalType(data["type"]),
            job=data["job"],
            cause=data.get("cause"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


def create_done_signal(job: str) -> RunSignal:
    """Create a completion signal."""
    return RunSignal(type=SignalType.DONE, job=job)


def create_failed_signal(job: str, cause: str) -> RunSignal:
    """Create a failure signal."""
    return RunSignal(type=SignalType.FAILED, job=job, cause=cause)
