"""Abstract collaborators driving authentication, serving and the device."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import SecretStr

from device_suite_runner.watcher import StreamWatcher


class AuthenticationError(Exception):
    """Raised when the remote service rejects the credentials."""


class AuthService(ABC):
    """Authenticates the driver against the remote service."""

    @abstractmethod
    async def login(self, username: str, password: SecretStr) -> None:
        """Log in with a credential pair.

        Raises:
            AuthenticationError: If the credentials are rejected

        """


class ProjectServer(ABC):
    """Builds and serves a project, exposing its log output."""

    @abstractmethod
    async def start(self, project_path: Path, watcher: StreamWatcher) -> None:
        """Start serving the project, feeding its log into the watcher.

        Returns once the process is started, not once it is ready.
        """

    @abstractmethod
    async def read_port(self, project_path: Path) -> int:
        """Return the port the serving process is bound to."""

    @abstractmethod
    async def stop(self, project_path: Path) -> None:
        """Stop serving the project."""


class DeviceController(ABC):
    """Controls the execution environment the app runs in."""

    @abstractmethod
    async def open_environment(self) -> None:
        """Open the simulator or device."""

    @abstractmethod
    async def uninstall_app(self) -> None:
        """Remove any previously installed app."""

    @abstractmethod
    async def install_app(self, artifact_url: str) -> None:
        """Install the app from an artifact reference."""

    @abstractmethod
    async def is_app_installed(self) -> bool:
        """Check if the app is installed."""

    @abstractmethod
    async def open_url(self, url: str) -> None:
        """Open a url inside the execution environment."""

    async def wait_for_app_installed(
        self,
        timeout: float = 120,
        poll_interval: float = 1,
    ) -> None:
        """Wait until the app is reported as installed.

        Args:
            timeout: Maximum wait time in seconds (default: 2 minutes)
            poll_interval: Seconds between checks (default: 1)

        Raises:
            TimeoutError: If the app is not installed within timeout

        """
        deadline = asyncio.get_running_loop().time() + timeout

        while True:
            if await self.is_app_installed():
                return

            if asyncio.get_running_loop().time() >= deadline:
                raise TimeoutError(f"App was not installed within {timeout} seconds")

            await asyncio.sleep(poll_interval)


@dataclass(frozen=True, kw_only=True)
class Platform:
    """Collaborators and credentials needed for a single run."""

    auth: AuthService
    server: ProjectServer
    device: DeviceController
    username: str
    password: SecretStr = field(repr=False)
