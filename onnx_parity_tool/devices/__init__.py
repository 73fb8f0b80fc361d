"""Target -> device resolution, extension loading and device ownership."""

from .extensions import ExtensionLoader, extension_candidates
from .resolver import Device, DeviceResolver
from .sessions import DeviceSession, DeviceSessionRegistry, default_registry

__all__ = [
    "Device",
    "DeviceResolver",
    "DeviceSession",
    "DeviceSessionRegistry",
    "ExtensionLoader",
    "default_registry",
    "extension_candidates",
]
