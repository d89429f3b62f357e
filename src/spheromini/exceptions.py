"""Exceptions raised by the spheromini package."""

from __future__ import annotations


class SpheroError(Exception):
    """Base exception for all spheromini errors."""


class BLEConnectionError(SpheroError):
    """Scanning, connecting or service discovery failed."""


class CharacteristicNotFoundError(BLEConnectionError):
    """A required GATT characteristic is missing after discovery."""

    def __init__(self, uuid: str):
        super().__init__(f"Characteristic {uuid} not found")
        self.uuid = uuid


class TransportWriteError(BLEConnectionError):
    """Writing to the API characteristic failed."""


class BLETimeoutError(SpheroError, TimeoutError):
    """No matching response arrived within the timeout."""


class ProtocolError(SpheroError):
    """Protocol-level error."""


class ChecksumError(ProtocolError):
    """Decoded frame checksum does not match its contents."""


class InvalidResponseError(ProtocolError):
    """Frame or response payload is malformed."""


class CommandError(ProtocolError):
    """Robot answered with a non-zero API error code."""

    def __init__(self, message: str, error_code: int):
        super().__init__(message)
        self.error_code = error_code


class CommandInProgressError(ProtocolError):
    """A command was sent while another one is still awaiting its response."""


class DeviceNotReadyError(SpheroError, RuntimeError):
    """Device is not connected and awake."""
