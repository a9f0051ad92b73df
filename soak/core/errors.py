"""Soak engine exceptions."""

from __future__ import annotations

from typing import Optional


class SoakError(Exception):
    """Base class for soak engine errors."""


class PlatformError(SoakError):
    """The workload platform rejected or failed an operation."""

    def __init__(self, operation: str, resource: str, message: str):
        self.operation = operation
        self.resource = resource
        self.message = message
        super().__init__(f"{operation} {resource} failed: {message}")


class SetupError(SoakError):
    """Fatal error before the run phase; no partial population is run."""

    def __init__(self, phase: str, message: str, resource: Optional[str] = None):
        self.phase = phase
        self.resource = resource
        self.message = message
        super().__init__(f"Setup failed in {phase} phase: {message}")


class ReadinessTimeoutError(SetupError):
    """Not every job was observed running before the readiness timeout.

    ``timeout`` is counted in poll ticks of ``poll_interval`` seconds.
    """

    def __init__(self, timeout: int, not_ready: list[str], poll_interval: float = 1.0):
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.not_ready = list(not_ready)
        super().__init__(
            "readiness",
            f"timeout after {timeout} polls ({timeout * poll_interval:g}s) "
            f"waiting for jobs to be ready: {', '.join(self.not_ready)}",
        )


class TeardownError(SoakError):
    """One or more resources could not be removed during teardown."""

    def __init__(self, failures: list[str]):
        self.failures = list(failures)
        super().__init__(f"Teardown left {len(self.failures)} resource(s): {'; '.join(self.failures)}")


class OrchestratorStateError(SoakError):
    """An orchestrator entry point was called out of order or twice."""
