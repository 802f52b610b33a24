"""Tests for DeviceController base class."""

from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest

from device_suite_runner.platforms.base import DeviceController


@dataclass(frozen=True, kw_only=True)
class MockDeviceController(DeviceController):
    """Test device that returns configurable install checks."""

    installed_responses: Sequence[bool] = field(default_factory=list)
    _check_count: list[int] = field(default_factory=lambda: [0])

    async def open_environment(self) -> None:  # pragma: no cover
        """Do nothing."""

    async def uninstall_app(self) -> None:  # pragma: no cover
        """Do nothing."""

    async def install_app(self, artifact_url: str) -> None:  # pragma: no cover
        """Do nothing."""

    async def open_url(self, url: str) -> None:  # pragma: no cover
        """Do nothing."""

    async def is_app_installed(self) -> bool:
        """Return next response from installed_responses, then keep returning False."""
        idx = self._check_count[0]
        self._check_count[0] += 1
        if idx < len(self.installed_responses):
            return self.installed_responses[idx]
        return False  # Never installed if responses exhausted


class TestWaitForAppInstalled:
    """Tests for wait_for_app_installed method."""

    async def test_returns_immediately_when_installed(self) -> None:
        """Returns after the first check when the app is installed."""
        device = MockDeviceController(installed_responses=[True])

        await device.wait_for_app_installed(poll_interval=0.01)

        assert device._check_count[0] == 1

    async def test_polls_until_installed(self) -> None:
        """Keeps checking until the app is reported installed."""
        device = MockDeviceController(installed_responses=[False, False, True])

        await device.wait_for_app_installed(poll_interval=0.01)

        assert device._check_count[0] == 3

    async def test_raises_timeout_error(self) -> None:
        """Raises TimeoutError when the app never shows up."""
        device = MockDeviceController(installed_responses=[False, False, False])

        with pytest.raises(TimeoutError, match="not installed within"):
            await device.wait_for_app_installed(timeout=0.05, poll_interval=0.02)
