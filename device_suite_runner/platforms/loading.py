"""Loading of platforms from entry points."""

from collections.abc import Sequence
from importlib.metadata import entry_points
from typing import Any

from device_suite_runner.platforms.manifest import PlatformManifest

ENTRY_POINT_GROUP = "device_suite_runner.platforms"


class PlatformNotFoundError(Exception):
    """Raised when a platform is not found."""


def available_platforms() -> Sequence[str]:
    """Return the keys of all installed platforms, sorted."""
    return sorted(entry.name for entry in entry_points(group=ENTRY_POINT_GROUP))


def load_platform_manifest(key: str) -> PlatformManifest[Any]:
    """Load a platform manifest by key.

    Args:
        key: The platform key as registered in pyproject.toml
             (e.g., "ios-simulator")

    Raises:
        PlatformNotFoundError: If no platform with the given key is found

    """
    for entry in entry_points(group=ENTRY_POINT_GROUP):
        if entry.name == key:
            manifest: PlatformManifest[Any] = entry.load()
            return manifest

    raise PlatformNotFoundError(
        f"Platform '{key}' not found. Available platforms: {available_platforms()}"
    )
