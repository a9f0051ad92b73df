"""Soak engine configuration settings."""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def default_fio_args() -> list[str]:
    """fio arguments appended to every job's argument list."""
    return [
        "--name=benchtest",
        "--numjobs=1",
        "--direct=1",
        "--rw=randrw",
        "--ioengine=libaio",
        "--bs=4k",
        "--iodepth=16",
        "--verify=crc32",
    ]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    app_name: str = "IO Soak"
    app_version: str = "1.0.0"

    # Workload image
    registry: str = "ci-registry:5000"
    fio_image: str = "mayastor/e2e-fio"

    # Volumes
    volume_size_mb: int = 500
    fio_size_mb: int = 400
    fs_filename: str = "/volume/fiotestfile"
    block_filename: str = "/dev/sdm"
    fio_args: list[str] = Field(default_factory=default_fio_args)

    # Namespaces
    default_namespace: str = "default"
    disruptor_namespace: str = "iosoak-disrupt"
    storage_provisioner: str = "io.openebs.csi-mayastor"

    # Readiness
    job_ready_allowance: int = 20  # seconds per job
    readiness_timeout_floor: int = 60  # seconds
    readiness_poll_interval: float = 1.0  # seconds

    # Run phase
    run_grace_seconds: int = 120  # beyond the soak duration

    # kubectl
    kubectl_path: str = "kubectl"
    kubectl_timeout: int = 120  # seconds, per non-IO command

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_prefix = "IOSOAK_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def image(self) -> str:
        """Fully qualified fio workload image."""
        return f"{self.registry}/{self.fio_image}"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(**kwargs) -> Settings:
    """Initialize settings with custom values."""
    global _settings
    _settings = Settings(**kwargs)
    return _settings
