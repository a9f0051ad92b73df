"""Unit tests for KubectlPlatform."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from common.models.job import (
    DutyCycle,
    RestartPolicy,
    ShareProtocol,
    StorageClassSpec,
    VolumeMode,
    VolumeRequest,
    WorkloadDefinition,
)
from soak.core.errors import PlatformError
from soak.platform.kubectl import KubectlPlatform


def make_process(returncode=0, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.kill = MagicMock()
    proc.wait = AsyncMock(return_value=-9)
    return proc


@pytest.fixture
def kubectl(settings):
    return KubectlPlatform(settings)


@pytest.fixture
def mock_exec():
    with patch("soak.platform.kubectl.asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock:
        mock.return_value = make_process()
        yield mock


def applied_manifest(mock_exec) -> dict:
    proc = mock_exec.return_value
    input_bytes = proc.communicate.call_args.args[0]
    return yaml.safe_load(input_bytes.decode())


@pytest.mark.asyncio
class TestKubectlPlatform:
    """Tests for kubectl command construction."""

    async def test_create_storage_class(self, kubectl, mock_exec):
        spec = StorageClassSpec(name="iosoak-nvmf", protocol=ShareProtocol.NVMF, replicas=3)

        await kubectl.create_storage_class(spec)

        assert mock_exec.call_args.args == ("kubectl", "apply", "-f", "-")
        manifest = applied_manifest(mock_exec)
        assert manifest["kind"] == "StorageClass"
        assert manifest["metadata"]["name"] == "iosoak-nvmf"
        assert manifest["parameters"] == {"repl": "3", "protocol": "nvmf"}

    async def test_create_block_volume(self, kubectl, mock_exec):
        request = VolumeRequest(
            name="vol-1", storage_class="sc", size_mb=500,
            mode=VolumeMode.RAW_BLOCK, namespace="iosoak-disrupt",
        )

        await kubectl.create_volume(request)

        manifest = applied_manifest(mock_exec)
        assert manifest["kind"] == "PersistentVolumeClaim"
        assert manifest["metadata"]["namespace"] == "iosoak-disrupt"
        assert manifest["spec"]["volumeMode"] == "Block"
        assert manifest["spec"]["storageClassName"] == "sc"
        assert manifest["spec"]["resources"]["requests"]["storage"] == "500Mi"

    async def test_create_workload_instance(self, kubectl, mock_exec, settings):
        definition = WorkloadDefinition(
            name="fio-disruptor-sc-1",
            namespace="iosoak-disrupt",
            volume_name="fio-disruptor-sc-1",
            volume_mode=VolumeMode.RAW_BLOCK,
            image="registry/fio",
            args=["segfault-after", "10", "--"],
            node_selector={"e2e-app": "true"},
            restart_policy=RestartPolicy.ALWAYS,
        )

        handle = await kubectl.create_workload_instance(definition)

        assert handle == "fio-disruptor-sc-1"
        manifest = applied_manifest(mock_exec)
        spec = manifest["spec"]
        assert spec["restartPolicy"] == "Always"
        assert spec["nodeSelector"] == {"e2e-app": "true"}
        container = spec["containers"][0]
        assert container["args"] == ["segfault-after", "10", "--"]
        assert container["volumeDevices"][0]["devicePath"] == settings.block_filename
        assert spec["volumes"][0]["persistentVolumeClaim"]["claimName"] == "fio-disruptor-sc-1"

    async def test_filesystem_instance_mounts_volume(self, kubectl, mock_exec):
        definition = WorkloadDefinition(
            name="fio-filesystem-sc-1",
            volume_name="fio-filesystem-sc-1",
            volume_mode=VolumeMode.FILESYSTEM,
            image="registry/fio",
        )

        await kubectl.create_workload_instance(definition)

        container = applied_manifest(mock_exec)["spec"]["containers"][0]
        assert "volumeMounts" in container
        assert "volumeDevices" not in container

    async def test_delete_volume(self, kubectl, mock_exec):
        await kubectl.delete_volume("vol-1", "default")

        assert mock_exec.call_args.args == ("kubectl", "delete", "pvc", "vol-1", "-n", "default")

    async def test_failure_raises_platform_error(self, kubectl, mock_exec):
        mock_exec.return_value = make_process(returncode=1, stderr=b"Error from server (NotFound)")

        with pytest.raises(PlatformError) as exc_info:
            await kubectl.delete_namespace("missing")

        assert exc_info.value.resource == "missing"
        assert "NotFound" in exc_info.value.message

    @pytest.mark.parametrize("phase,expected", [
        (b"Running", True),
        (b"Pending", False),
        (b"CrashLoopBackOff", False),
    ])
    async def test_is_running(self, kubectl, mock_exec, phase, expected):
        mock_exec.return_value = make_process(stdout=phase)

        assert await kubectl.is_running("pod-1", "default") is expected
        assert "jsonpath={.status.phase}" in mock_exec.call_args.args

    async def test_run_soak_io(self, kubectl, mock_exec, settings):
        await kubectl.run_soak_io(
            "pod-1", "default", 30, DutyCycle(think_time=5, think_time_blocks=50), VolumeMode.FILESYSTEM,
        )

        args = list(mock_exec.call_args.args)
        assert args[:6] == ["kubectl", "exec", "-n", "default", "pod-1", "--"]
        assert "--runtime=30" in args
        assert "--thinktime=5" in args
        assert "--thinktime_blocks=50" in args
        assert f"--filename={settings.fs_filename}" in args
        assert f"--size={settings.fio_size_mb}m" in args

    async def test_run_soak_io_failure(self, kubectl, mock_exec):
        mock_exec.return_value = make_process(returncode=1, stderr=b"fio: verify error")

        with pytest.raises(PlatformError, match="verify error"):
            await kubectl.run_soak_io("pod-1", "default", 30, DutyCycle(), VolumeMode.RAW_BLOCK)

    async def test_timeout(self, kubectl, mock_exec):
        proc = make_process(returncode=None)
        proc.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        mock_exec.return_value = proc

        rc, _, stderr = await kubectl.run_kubectl(["get", "pods"], "List pods")

        assert rc == -1
        assert stderr == "Command timed out"
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    async def test_cancel_kills_child(self, kubectl, mock_exec):
        proc = make_process(returncode=None)
        proc.communicate = AsyncMock(side_effect=asyncio.CancelledError)
        mock_exec.return_value = proc

        with pytest.raises(asyncio.CancelledError):
            await kubectl.run_kubectl(["exec", "pod-1", "--", "fio"], "Run fio")

        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()


@pytest.mark.asyncio
class TestKubectlProcessLifetime:
    """Tests against a real child process standing in for kubectl."""

    @pytest.fixture
    def sleeper(self, settings):
        settings.kubectl_path = "sleep"
        platform = KubectlPlatform(settings)
        spawned = []
        real_exec = asyncio.create_subprocess_exec

        async def record_exec(*args, **kwargs):
            proc = await real_exec(*args, **kwargs)
            spawned.append(proc)
            return proc

        with patch("soak.platform.kubectl.asyncio.create_subprocess_exec", new=record_exec):
            yield platform, spawned

    async def test_timed_out_child_is_reaped(self, sleeper):
        platform, spawned = sleeper

        rc, _, stderr = await platform.run_kubectl(["30"], "Sleep", timeout=0.2)

        assert rc == -1
        assert stderr == "Command timed out"
        assert spawned[0].returncode is not None

    async def test_cancelled_child_is_reaped(self, sleeper):
        platform, spawned = sleeper

        task = asyncio.create_task(platform.run_kubectl(["30"], "Sleep", timeout=60))
        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert spawned[0].returncode is not None

    async def test_missing_binary(self, kubectl, mock_exec):
        mock_exec.side_effect = FileNotFoundError("kubectl not found")

        with pytest.raises(PlatformError):
            await kubectl.create_namespace("ns")

    async def test_command_log(self, kubectl, mock_exec):
        await kubectl.create_namespace("ns")
        await kubectl.delete_namespace("ns")

        log = kubectl.get_command_log()
        assert [entry["command"] for entry in log] == [
            "kubectl create namespace ns",
            "kubectl delete namespace ns",
        ]

        kubectl.clear_command_log()
        assert kubectl.get_command_log() == []
