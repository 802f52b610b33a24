"""iOS simulator platform module."""

from device_suite_runner.platforms.ios_simulator.config import IosSimulatorConfig
from device_suite_runner.platforms.ios_simulator.manifest import ios_simulator_manifest
from device_suite_runner.platforms.ios_simulator.provider import (
    HttpAuthService,
    SimctlDeviceController,
    SubprocessProjectServer,
    ios_simulator_platform,
)

__all__ = [
    "HttpAuthService",
    "IosSimulatorConfig",
    "SimctlDeviceController",
    "SubprocessProjectServer",
    "ios_simulator_manifest",
    "ios_simulator_platform",
]
