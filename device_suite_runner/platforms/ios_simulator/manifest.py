"""iOS simulator platform manifest."""

from device_suite_runner.platforms.ios_simulator.config import IosSimulatorConfig
from device_suite_runner.platforms.ios_simulator.provider import (
    ios_simulator_platform,
)
from device_suite_runner.platforms.manifest import PlatformManifest

ios_simulator_manifest = PlatformManifest(
    config_cls=IosSimulatorConfig,
    platform_factory=ios_simulator_platform,
)
