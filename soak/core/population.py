"""Build the job population and storage classes for a soak session."""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from common.models.job import JobKind, StorageClassSpec
from common.models.soak import SoakConfig
from soak.config import Settings
from soak.core.jobs import DisruptorJob, FilesystemSoakJob, Job, RawBlockSoakJob
from soak.platform.base import WorkloadPlatform

logger = logging.getLogger(__name__)


def soak_class_name(protocol: str) -> str:
    return f"iosoak-{protocol}"


def disruptor_class_name(protocol: str) -> str:
    return f"iosoak-disruptor-{protocol}"


def build_storage_classes(config: SoakConfig, settings: Settings) -> dict[JobKind, list[StorageClassSpec]]:
    """Storage classes per variant family. Filesystem and raw block jobs share classes."""
    soak_classes = [
        StorageClassSpec(
            name=soak_class_name(proto.value),
            protocol=proto,
            replicas=config.replicas,
            namespace=settings.default_namespace,
        )
        for proto in config.protocols
    ]
    disruptor_classes = [
        StorageClassSpec(
            name=disruptor_class_name(proto.value),
            protocol=proto,
            replicas=config.replicas,
            namespace=settings.default_namespace,
        )
        for proto in config.protocols
    ]
    return {
        JobKind.FILESYSTEM: soak_classes,
        JobKind.RAW_BLOCK: soak_classes,
        JobKind.DISRUPTOR: disruptor_classes,
    }


def round_robin(class_names: Sequence[str], count: int, start: int = 1) -> Iterator[tuple[int, str]]:
    """Yield (job id, storage class) pairs, cycling over the classes."""
    idx = start
    end = start + count
    while idx < end:
        for sc_name in class_names:
            if idx >= end:
                break
            yield idx, sc_name
            idx += 1


def build_population(
    config: SoakConfig,
    platform: WorkloadPlatform,
    settings: Settings,
) -> list[Job]:
    """Create the jobs described by ``config``.

    Soak jobs (filesystem first, then raw block) share one id sequence,
    disruptors have their own. Ids start at 1.
    """
    classes = build_storage_classes(config, settings)
    soak_names = [sc.name for sc in classes[JobKind.FILESYSTEM]]
    disruptor_names = [sc.name for sc in classes[JobKind.DISRUPTOR]]
    duty_cycles = list(config.duty_cycles)

    jobs: list[Job] = []

    for job_id, sc_name in round_robin(soak_names, config.filesystem_jobs):
        jobs.append(FilesystemSoakJob(job_id, sc_name, config.duration, platform, settings, duty_cycles))

    for job_id, sc_name in round_robin(soak_names, config.raw_block_jobs, start=config.filesystem_jobs + 1):
        jobs.append(RawBlockSoakJob(job_id, sc_name, config.duration, platform, settings, duty_cycles))

    for job_id, sc_name in round_robin(disruptor_names, config.disrupt.pod_count):
        jobs.append(
            DisruptorJob(job_id, sc_name, config.disrupt.fault_after, platform, settings, duty_cycles)
        )

    logger.info(
        f"Built population of {len(jobs)} jobs: {config.filesystem_jobs} filesystem, "
        f"{config.raw_block_jobs} raw block, {config.disrupt.pod_count} disruptor"
    )
    return jobs


def referenced_storage_classes(
    config: SoakConfig,
    settings: Settings,
    jobs: Sequence[Job],
) -> list[StorageClassSpec]:
    """Distinct storage classes referenced by at least one job, in creation order."""
    referenced = {job.identity.storage_class for job in jobs}
    result: list[StorageClassSpec] = []
    seen: set[str] = set()
    for specs in build_storage_classes(config, settings).values():
        for spec in specs:
            if spec.name in referenced and spec.name not in seen:
                seen.add(spec.name)
                result.append(spec)
    return result
