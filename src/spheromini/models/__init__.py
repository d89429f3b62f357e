"""Data models for Sphero Mini devices."""

from .enums import DeferredAction, DeviceState
from .firmware import FirmwareVersion

__all__ = [
    "DeferredAction",
    "DeviceState",
    "FirmwareVersion",
]
