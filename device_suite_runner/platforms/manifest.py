"""Platform manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from device_suite_runner.platforms.base import Platform


@dataclass(frozen=True, kw_only=True)
class PlatformManifest[ConfigT: BaseModel]:
    """Manifest describing a platform plugin.

    The manifest contains references to the configuration class and the
    platform factory function for lazy loading of platforms based on their key.
    """

    config_cls: type[ConfigT]
    platform_factory: Callable[[ConfigT], AbstractAsyncContextManager[Platform]]
