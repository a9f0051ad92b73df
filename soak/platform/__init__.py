"""Workload platform collaborators."""

from soak.platform.base import WorkloadPlatform
from soak.platform.kubectl import KubectlPlatform

__all__ = ["WorkloadPlatform", "KubectlPlatform"]
