"""Sphero Mini BLE Protocol Package.

  Pure Python package for driving Sphero Mini robots over Bluetooth LE.
  """

from .device import SpheroMini
from .discovery import discover_devices
from .exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    CharacteristicNotFoundError,
    ChecksumError,
    CommandError,
    CommandInProgressError,
    DeviceNotReadyError,
    InvalidResponseError,
    ProtocolError,
    SpheroError,
    TransportWriteError,
)
from .models import DeferredAction, DeviceState, FirmwareVersion
from .protocol import (
    CommandDispatcher,
    DeviceId,
    ErrorCode,
    Flag,
    Frame,
    NotificationFramer,
    decode_frame,
    encode_frame,
)
from .transport import BLEConnection

__version__ = "0.1.0"

__all__ = [
    # Main API
    "SpheroMini",
    "discover_devices",
    # Exceptions
    "SpheroError",
    "BLEConnectionError",
    "BLETimeoutError",
    "CharacteristicNotFoundError",
    "TransportWriteError",
    "ProtocolError",
    "ChecksumError",
    "InvalidResponseError",
    "CommandError",
    "CommandInProgressError",
    "DeviceNotReadyError",
    # Models
    "DeviceState",
    "DeferredAction",
    "FirmwareVersion",
    # Protocol engine
    "BLEConnection",
    "CommandDispatcher",
    "NotificationFramer",
    "Frame",
    "Flag",
    "DeviceId",
    "ErrorCode",
    "encode_frame",
    "decode_frame",
]
