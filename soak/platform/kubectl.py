"""kubectl-backed workload platform."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from common.models.job import (
    DutyCycle,
    StorageClassSpec,
    VolumeMode,
    VolumeRequest,
    WorkloadDefinition,
)
from soak.config import Settings, get_settings
from soak.core.errors import PlatformError
from soak.platform.base import WorkloadPlatform

logger = logging.getLogger(__name__)

VOLUME_MOUNT_PATH = "/volume"


class KubectlPlatform(WorkloadPlatform):
    """Drive a Kubernetes cluster through the kubectl binary."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.command_log: List[Dict[str, Any]] = []

    def log_command(self, command: list[str], description: str) -> None:
        """Log a command for tracking/debugging."""
        text = " ".join(command)
        self.command_log.append({
            "timestamp": datetime.now().isoformat(),
            "command": text,
            "description": description,
        })
        logger.debug(f"{description}: {text[:200]}{'...' if len(text) > 200 else ''}")

    def get_command_log(self) -> List[Dict[str, Any]]:
        """Get all logged commands."""
        return self.command_log.copy()

    def clear_command_log(self) -> None:
        """Clear the command log."""
        self.command_log = []

    async def run_kubectl(
        self,
        args: list[str],
        description: str,
        input_data: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> tuple[int, str, str]:
        """Run a kubectl command locally."""
        cmd = [self.settings.kubectl_path] + args
        self.log_command(cmd, description)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input_data is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return -1, "", str(e)

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(input_data.encode() if input_data is not None else None),
                timeout=timeout or self.settings.kubectl_timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(proc, description)
            return -1, "", "Command timed out"
        except asyncio.CancelledError:
            await self._kill(proc, description)
            raise
        return proc.returncode or 0, stdout.decode(), stderr.decode()

    async def _kill(self, proc: asyncio.subprocess.Process, description: str) -> None:
        """Kill a kubectl child that is still running and reap it."""
        if proc.returncode is None:
            logger.warning(f"Killing kubectl process {proc.pid} ({description})")
            proc.kill()
            await proc.wait()

    async def _checked(
        self,
        operation: str,
        resource: str,
        args: list[str],
        input_data: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> str:
        rc, stdout, stderr = await self.run_kubectl(
            args, f"{operation} {resource}", input_data=input_data, timeout=timeout
        )
        if rc != 0:
            raise PlatformError(operation, resource, (stderr or stdout).strip())
        return stdout

    async def _apply(self, operation: str, resource: str, manifest: dict) -> None:
        await self._checked(
            operation,
            resource,
            ["apply", "-f", "-"],
            input_data=yaml.safe_dump(manifest, sort_keys=False),
        )

    # Manifests

    def _storage_class_manifest(self, spec: StorageClassSpec) -> dict:
        return {
            "apiVersion": "storage.k8s.io/v1",
            "kind": "StorageClass",
            "metadata": {"name": spec.name},
            "provisioner": self.settings.storage_provisioner,
            "parameters": {
                "repl": str(spec.replicas),
                "protocol": spec.protocol.value,
            },
        }

    def _volume_manifest(self, request: VolumeRequest) -> dict:
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {"name": request.name, "namespace": request.namespace},
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "volumeMode": "Block" if request.mode == VolumeMode.RAW_BLOCK else "Filesystem",
                "storageClassName": request.storage_class,
                "resources": {"requests": {"storage": f"{request.size_mb}Mi"}},
            },
        }

    def _pod_manifest(self, definition: WorkloadDefinition) -> dict:
        container: dict = {
            "name": definition.name,
            "image": definition.image,
            "args": list(definition.args),
        }
        if definition.volume_mode == VolumeMode.RAW_BLOCK:
            container["volumeDevices"] = [
                {"name": "ms-volume", "devicePath": self.settings.block_filename}
            ]
        else:
            container["volumeMounts"] = [
                {"name": "ms-volume", "mountPath": VOLUME_MOUNT_PATH}
            ]

        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": definition.name, "namespace": definition.namespace},
            "spec": {
                "restartPolicy": definition.restart_policy.value,
                "nodeSelector": dict(definition.node_selector),
                "containers": [container],
                "volumes": [
                    {
                        "name": "ms-volume",
                        "persistentVolumeClaim": {"claimName": definition.volume_name},
                    }
                ],
            },
        }

    def _fio_command(self, duration: int, duty_cycle: DutyCycle, volume_mode: VolumeMode) -> list[str]:
        if volume_mode == VolumeMode.RAW_BLOCK:
            filename = self.settings.block_filename
        else:
            filename = self.settings.fs_filename

        fio_args = [
            "fio",
            "--time_based",
            f"--runtime={duration}",
            f"--filename={filename}",
            f"--thinktime={duty_cycle.think_time}",
            f"--thinktime_blocks={duty_cycle.think_time_blocks}",
        ]
        if volume_mode == VolumeMode.FILESYSTEM:
            fio_args.append(f"--size={self.settings.fio_size_mb}m")
        fio_args.extend(self.settings.fio_args)
        return fio_args

    # WorkloadPlatform

    async def create_storage_class(self, spec: StorageClassSpec) -> None:
        await self._apply("create storage class", spec.name, self._storage_class_manifest(spec))

    async def delete_storage_class(self, name: str) -> None:
        await self._checked("delete storage class", name, ["delete", "storageclass", name])

    async def create_volume(self, request: VolumeRequest) -> None:
        await self._apply("create volume", request.name, self._volume_manifest(request))

    async def delete_volume(self, name: str, namespace: str) -> None:
        await self._checked("delete volume", name, ["delete", "pvc", name, "-n", namespace])

    async def create_workload_instance(self, definition: WorkloadDefinition) -> str:
        await self._apply("create workload instance", definition.name, self._pod_manifest(definition))
        return definition.name

    async def delete_workload_instance(self, name: str, namespace: str) -> None:
        await self._checked(
            "delete workload instance", name,
            ["delete", "pod", name, "-n", namespace, "--grace-period=0"],
        )

    async def is_running(self, name: str, namespace: str) -> bool:
        stdout = await self._checked(
            "get workload instance status", name,
            ["get", "pod", name, "-n", namespace, "-o", "jsonpath={.status.phase}"],
        )
        return stdout.strip() == "Running"

    async def create_namespace(self, name: str) -> None:
        await self._checked("create namespace", name, ["create", "namespace", name])

    async def delete_namespace(self, name: str) -> None:
        await self._checked("delete namespace", name, ["delete", "namespace", name])

    async def run_soak_io(
        self,
        instance: str,
        namespace: str,
        duration: int,
        duty_cycle: DutyCycle,
        volume_mode: VolumeMode,
    ) -> None:
        fio_cmd = self._fio_command(duration, duty_cycle, volume_mode)
        logger.info(f"Running soak IO on {instance} for {duration}s")
        await self._checked(
            "run soak io", instance,
            ["exec", "-n", namespace, instance, "--"] + fio_cmd,
            timeout=duration + self.settings.run_grace_seconds,
        )
