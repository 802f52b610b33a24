"""Run orchestrator sequencing a single end-to-end test run."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import aiohttp
from pydantic import ValidationError

from device_suite_runner.markers import is_completion, is_ready, parse_completion
from device_suite_runner.models.summary import Manifest, RunSummary
from device_suite_runner.platforms.base import Platform
from device_suite_runner.watcher import StreamWatcher

log = logging.getLogger(__name__)

DEFAULT_MANIFEST_NAME = "test-suite"
SERVE_SCHEME = "exp"
MAX_EXIT_STATUS = 255


class ManifestValidationError(Exception):
    """Raised when the served manifest does not describe the test suite."""


def serve_url(port: int) -> str:
    """Build the url the execution environment opens."""
    return f"{SERVE_SCHEME}://localhost:{port}"


def manifest_url(url: str) -> str:
    """Rewrite the custom scheme of a serve url to http."""
    if url.startswith(f"{SERVE_SCHEME}://"):
        return "http" + url[len(SERVE_SCHEME) :]
    return url


def validate_manifest(body: str, expected_name: str) -> Manifest:
    """Parse a manifest and check it names the expected artifact.

    Raises:
        ManifestValidationError: If the body is not a manifest or its name is
            not exactly expected_name

    """
    try:
        manifest = Manifest.model_validate_json(body)
    except ValidationError as e:
        raise ManifestValidationError(f"Invalid test suite manifest: {e}") from e

    if manifest.name != expected_name:
        raise ManifestValidationError(
            f"Bad name in test suite manifest: expected '{expected_name}', "
            f"got '{manifest.name}'"
        )
    return manifest


def exit_code(summary: RunSummary) -> int:
    """Translate a run summary into a process exit status.

    The status is the failed count, capped at 255 because the operating system
    keeps only the low byte. 255 means 255 or more failed specs.
    """
    return min(summary.failed_count, MAX_EXIT_STATUS)


@dataclass(frozen=True, kw_only=True)
class RunOrchestrator:
    """Drives the serving process and the device through a single run.

    Every step runs after the previous one completed, the first failure
    propagates and aborts the rest of the run.
    """

    platform: Platform
    session: aiohttp.ClientSession = field(repr=False)
    watcher: StreamWatcher = field(default_factory=StreamWatcher)
    expected_name: str = DEFAULT_MANIFEST_NAME
    ready_timeout: float | None = None
    done_timeout: float | None = None

    async def run(self, project_path: Path, app_url: str | None = None) -> RunSummary:
        """Run the test suite served from project_path.

        Args:
            project_path: Directory of the project to serve
            app_url: Optional artifact to install before launching

        Returns:
            Summary parsed from the completion marker

        """
        platform = self.platform

        log.info("Logging in as %s", platform.username)
        await platform.auth.login(platform.username, platform.password)

        log.info("Starting serving process for %s", project_path)
        ready = self.watcher.subscribe(is_ready)
        await platform.server.start(project_path, self.watcher)
        await self.watcher.wait(ready, self.ready_timeout, "Ready marker")

        port = await platform.server.read_port(project_path)
        url = serve_url(port)
        log.info("Url is %s", url)

        log.info("Checking test suite manifest")
        manifest = await self.fetch_manifest(url)
        log.info("Manifest name: %s", manifest.name)

        if app_url:
            await self.install_app(app_url)

        done = self.watcher.subscribe(is_completion, parse_completion)
        log.info("Opening %s in the execution environment", url)
        await platform.device.open_url(url)

        log.info("Waiting for test results...")
        summary = await self.watcher.wait(done, self.done_timeout, "Completion marker")
        log.info("Tests completed with %d failure(s)", summary.failed_count)

        log.info("Stopping serving process")
        await platform.server.stop(project_path)

        return summary

    async def fetch_manifest(self, url: str) -> Manifest:
        """Fetch and validate the manifest served at url."""
        async with self.session.get(manifest_url(url)) as response:
            if response.status != 200:
                text = await response.text()
                raise RuntimeError(
                    f"Failed to fetch manifest: {response.status} {text}"
                )
            body = await response.text()

        return validate_manifest(body, self.expected_name)

    async def install_app(self, app_url: str) -> None:
        """Replace the installed app with the given artifact."""
        device = self.platform.device

        log.info("Installing '%s' in the execution environment", app_url)
        await device.open_environment()
        await device.uninstall_app()
        await device.install_app(app_url)
        await device.wait_for_app_installed()
        log.info("App installed")
