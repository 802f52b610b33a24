"""CLI entry point for the device test suite driver."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import aiohttp

from device_suite_runner.models.summary import RunSummary
from device_suite_runner.orchestrator import (
    DEFAULT_MANIFEST_NAME,
    RunOrchestrator,
    exit_code,
)
from device_suite_runner.platforms.loading import (
    available_platforms,
    load_platform_manifest,
)


def log_results_summary(log: logging.Logger, summary: RunSummary) -> None:
    """Log the report lines received from the remote runner."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for line in summary.report_text.splitlines():
        log.info("%s", line)

    if summary.failed_count:
        log.info("%d spec(s) failed", summary.failed_count)
    else:
        log.info("All specs passed")


def format_output(summary: RunSummary) -> dict[str, Any]:
    """Format the run summary for JSON output."""
    return {
        "failed": summary.failed_count,
        "results": summary.report_text.splitlines(),
    }


async def run(
    platform_key: str,
    platform_config_json: str,
    project_path: Path,
    app_url: str | None = None,
    expected_name: str = DEFAULT_MANIFEST_NAME,
    ready_timeout: float | None = None,
    done_timeout: float | None = None,
) -> int:
    """Run the test suite and return exit code."""
    log = logging.getLogger("device_suite_runner")

    log.info("Loading platform: %s", platform_key)
    manifest = load_platform_manifest(platform_key)

    config_dict = json.loads(platform_config_json)
    config = manifest.config_cls(**config_dict)

    async with (
        manifest.platform_factory(config) as platform,
        aiohttp.ClientSession() as session,
    ):
        orchestrator = RunOrchestrator(
            platform=platform,
            session=session,
            expected_name=expected_name,
            ready_timeout=ready_timeout,
            done_timeout=done_timeout,
        )
        summary = await orchestrator.run(project_path.resolve(), app_url)

    log_results_summary(log, summary)

    print(json.dumps(format_output(summary), indent=2))

    return exit_code(summary)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Serve a test suite, run it on a device and collect results"
    )
    parser.add_argument(
        "--platform",
        required=True,
        help=f"Platform key ({', '.join(available_platforms()) or 'none installed'})",
    )
    parser.add_argument(
        "--platform-config",
        required=True,
        help="JSON configuration for the platform",
    )
    parser.add_argument(
        "--project-path",
        type=Path,
        default=Path("."),
        help="Path to the test suite project to serve",
    )
    parser.add_argument(
        "--app-url",
        default=None,
        help="App artifact to install before launching (path or URL)",
    )
    parser.add_argument(
        "--expected-name",
        default=DEFAULT_MANIFEST_NAME,
        help="Name the served manifest must carry",
    )
    parser.add_argument(
        "--ready-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the serving process (default: no limit)",
    )
    parser.add_argument(
        "--done-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the test results (default: no limit)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_status = asyncio.run(
        run(
            platform_key=args.platform,
            platform_config_json=args.platform_config,
            project_path=args.project_path,
            app_url=args.app_url,
            expected_name=args.expected_name,
            ready_timeout=args.ready_timeout,
            done_timeout=args.done_timeout,
        )
    )
    sys.exit(exit_status)


if __name__ == "__main__":  # pragma: no cover
    main()
