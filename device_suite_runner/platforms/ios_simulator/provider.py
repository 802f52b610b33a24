"""iOS simulator platform implementation."""

import asyncio
import contextlib
import logging
import tarfile
import tempfile
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import aiohttp
from pydantic import SecretStr

from device_suite_runner.platforms.base import (
    AuthenticationError,
    AuthService,
    DeviceController,
    Platform,
    ProjectServer,
)
from device_suite_runner.platforms.ios_simulator.config import IosSimulatorConfig
from device_suite_runner.platforms.ios_simulator.models import PackagerInfo
from device_suite_runner.process import command_succeeds, run_command
from device_suite_runner.watcher import StreamWatcher

log = logging.getLogger(__name__)

LOGIN_PATH = "/--/api/v2/auth/loginAsync"
PACKAGER_INFO_PATH = Path(".expo") / "packager-info.json"
SIMULATOR = "booted"
# The completion line carries the whole report
SERVE_LOG_LIMIT = 16 * 1024 * 1024


@dataclass(frozen=True, kw_only=True)
class HttpAuthService(AuthService):
    """Logs in against the remote service API."""

    session: aiohttp.ClientSession = field(repr=False)
    client_id: str

    async def login(self, username: str, password: SecretStr) -> None:
        """Log in with username and password."""
        payload = {
            "username": username,
            "password": password.get_secret_value(),
            "clientId": self.client_id,
        }

        async with self.session.post(LOGIN_PATH, json=payload) as response:
            if response.status != 200:
                text = await response.text()
                raise AuthenticationError(
                    f"Failed to log in as {username}: {response.status} {text}"
                )


@dataclass(frozen=True, kw_only=True)
class ServingProcess:
    """A running serving process and the task pumping its log."""

    process: asyncio.subprocess.Process
    pump: asyncio.Task[None]


@dataclass(frozen=True, kw_only=True)
class SubprocessProjectServer(ProjectServer):
    """Serves projects by running the serving command as a subprocess."""

    serve_command: Sequence[str]
    processes: dict[Path, ServingProcess] = field(default_factory=dict, repr=False)

    async def start(self, project_path: Path, watcher: StreamWatcher) -> None:
        """Spawn the serving command with its output pumped into the watcher."""
        if project_path in self.processes:
            raise RuntimeError(f"Project {project_path} is already being served")

        log.info("Starting: %s (cwd=%s)", " ".join(self.serve_command), project_path)
        process = await asyncio.create_subprocess_exec(
            *self.serve_command,
            cwd=project_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            limit=SERVE_LOG_LIMIT,
        )
        if process.stdout is None:  # pragma: no cover
            raise RuntimeError("Serving process has no output stream")

        self.processes[project_path] = ServingProcess(
            process=process,
            pump=asyncio.create_task(watcher.pump(process.stdout)),
        )

    async def read_port(self, project_path: Path) -> int:
        """Read the bound port from the packager info file."""
        info_path = project_path / PACKAGER_INFO_PATH
        content = await asyncio.to_thread(info_path.read_text)
        info = PackagerInfo.model_validate_json(content)
        return info.expo_server_port

    async def stop(self, project_path: Path) -> None:
        """Terminate the serving process and its log pump."""
        serving = self.processes.pop(project_path, None)
        if serving is None:
            raise RuntimeError(f"Project {project_path} is not being served")

        if serving.process.returncode is None:
            serving.process.terminate()
        returncode = await serving.process.wait()
        log.info("Serving process exited with status %s", returncode)

        serving.pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await serving.pump


@dataclass(frozen=True, kw_only=True)
class SimctlDeviceController(DeviceController):
    """Controls the booted iOS simulator through simctl."""

    bundle_id: str

    async def open_environment(self) -> None:
        """Open the Simulator application."""
        await run_command("open", "-a", "Simulator")

    async def uninstall_app(self) -> None:
        """Uninstall the app from the booted simulator."""
        await run_command("xcrun", "simctl", "uninstall", SIMULATOR, self.bundle_id)

    async def install_app(self, artifact_url: str) -> None:
        """Install the app from a local path or a downloadable tarball."""
        with tempfile.TemporaryDirectory() as tmp:
            workdir = Path(tmp)
            if artifact_url.startswith(("http://", "https://")):
                artifact = await download_artifact(artifact_url, workdir)
            else:
                artifact = Path(artifact_url)

            app_path = await asyncio.to_thread(extract_app, artifact, workdir)
            await run_command("xcrun", "simctl", "install", SIMULATOR, str(app_path))

    async def is_app_installed(self) -> bool:
        """Check if the app has a container on the booted simulator."""
        return await command_succeeds(
            "xcrun", "simctl", "get_app_container", SIMULATOR, self.bundle_id
        )

    async def open_url(self, url: str) -> None:
        """Open a url in the booted simulator."""
        await run_command("xcrun", "simctl", "openurl", SIMULATOR, url)


async def download_artifact(url: str, workdir: Path) -> Path:
    """Download an artifact into workdir and return its path."""
    destination = workdir / "artifact.tar.gz"
    log.info("Downloading %s", url)
    async with aiohttp.ClientSession() as session:
        async with session.get(url) as response:
            if response.status != 200:
                text = await response.text()
                raise RuntimeError(
                    f"Failed to download artifact: {response.status} {text}"
                )
            destination.write_bytes(await response.read())
    return destination


def extract_app(artifact: Path, workdir: Path) -> Path:
    """Return the .app bundle of an artifact, extracting tarballs first."""
    if artifact.is_dir():
        return artifact

    target = workdir / "Artifact.app"
    with tarfile.open(artifact) as archive:
        archive.extractall(target, filter="data")

    # Archives of the bundle contents carry no nested .app directory
    apps = sorted(target.rglob("*.app"))
    return apps[0] if apps else target


@asynccontextmanager
async def ios_simulator_platform(
    config: IosSimulatorConfig,
) -> AsyncGenerator[Platform, None]:
    """Create the platform with managed session lifecycle."""
    async with aiohttp.ClientSession(base_url=config.api_base_url) as session:
        yield Platform(
            auth=HttpAuthService(session=session, client_id=config.client_id),
            server=SubprocessProjectServer(serve_command=config.serve_command),
            device=SimctlDeviceController(bundle_id=config.bundle_id),
            username=config.username,
            password=config.password,
        )
