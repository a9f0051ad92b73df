"""IO Soak CLI - Command line interface."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from common.models.soak import SoakConfig, SoakResult
from common.utils import format_duration, load_yaml, parse_duration, save_yaml
from soak.config import get_settings
from soak.core.errors import SetupError
from soak.core.orchestrator import SoakOrchestrator
from soak.platform.base import WorkloadPlatform
from soak.platform.kubectl import KubectlPlatform

logger = logging.getLogger(__name__)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_SETUP_ERROR = 2


def configure_logging() -> None:
    """Configure root logging from settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def load_config(path: str, duration: Optional[str] = None) -> SoakConfig:
    """Load the population config, applying a duration override."""
    data = load_yaml(path)
    if duration:
        data["duration"] = parse_duration(duration)
    return SoakConfig(**data)


def print_result(result: SoakResult) -> None:
    """Print the run verdict and failures."""
    verdict = "PASSED" if result.passed else "FAILED"
    print(f"\nSoak {result.session_id}: {verdict}")
    print(f"Completed: {len(result.completed)}  Errors: {result.error_count}  "
          f"Elapsed: {format_duration(result.elapsed_seconds)}")

    if result.errors:
        print("\nJob Failures:")
        for error in result.errors:
            print(f"  ✗ {error.job}: {error.cause}")

    if result.teardown_warnings:
        print("\nTeardown Warnings:")
        for warning in result.teardown_warnings:
            print(f"  ⚠ {warning}")


def cmd_plan(args) -> int:
    """Show the storage classes and jobs a config would create."""
    config = load_config(args.config, args.duration)
    orchestrator = SoakOrchestrator(config, KubectlPlatform())
    state = orchestrator.get_state()

    print(f"Duration: {format_duration(config.duration)}")
    print(f"Storage classes: {', '.join(state['storage_classes']) or '(none)'}")
    print(f"Namespaces: {', '.join(state['namespaces']) or '(none)'}")
    print(f"\n{'Job':<45} {'Kind':<12} {'Namespace':<18}")
    print("-" * 75)
    for job in state["jobs"]:
        print(f"{job['name']:<45} {job['kind']:<12} {job['namespace']:<18}")
    return EXIT_PASSED


async def run_soak(config: SoakConfig, platform: WorkloadPlatform) -> SoakResult:
    orchestrator = SoakOrchestrator(config, platform)
    return await orchestrator.run()


def cmd_run(args) -> int:
    """Run a soak session."""
    config = load_config(args.config, args.duration)
    platform = KubectlPlatform()

    print(f"Starting soak with {config.total_jobs} jobs for {format_duration(config.duration)}")
    try:
        result = asyncio.run(run_soak(config, platform))
    except SetupError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        return EXIT_SETUP_ERROR

    print_result(result)

    if args.report:
        save_yaml(args.report, result.model_dump(mode="json"))
        print(f"\nReport written to {args.report}")

    return EXIT_PASSED if result.passed else EXIT_FAILED


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="IO soak test orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # plan
    plan_parser = subparsers.add_parser("plan", help="Show the population a config creates")
    plan_parser.add_argument("config", help="Population config (YAML)")
    plan_parser.add_argument("-d", "--duration", help="Override soak duration (e.g. 30m)")
    plan_parser.set_defaults(func=cmd_plan)

    # run
    run_parser = subparsers.add_parser("run", help="Run a soak session")
    run_parser.add_argument("config", help="Population config (YAML)")
    run_parser.add_argument("-d", "--duration", help="Override soak duration (e.g. 30m)")
    run_parser.add_argument("-r", "--report", help="Write the result as YAML to this path")
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_FAILED

    configure_logging()

    try:
        return args.func(args)
    except (OSError, ValueError, ValidationError) as e:
        print(f"Error: {e}")
        return EXIT_SETUP_ERROR


if __name__ == "__main__":
    sys.exit(main())
