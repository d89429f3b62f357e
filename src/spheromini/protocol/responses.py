"""Response validation and parsing."""

from __future__ import annotations

import struct

from ..exceptions import CommandError, InvalidResponseError
from ..models.firmware import FirmwareVersion
from .commands import ErrorCode
from .packet import Frame


def validate_response(frame: Frame, device_id: int, command_id: int) -> None:
    """Validate a response frame against the command that was sent.

    Args:
        frame: Decoded response frame
        device_id: Device id of the request
        command_id: Command id of the request

    Raises:
        InvalidResponseError: If the response echoes a different command
        CommandError: If the response carries a non-zero error code
    """
    if frame.device_id != device_id or frame.command_id != command_id:
        raise InvalidResponseError(
            f"Response echo mismatch: expected 0x{device_id:02X}/0x{command_id:02X}, "
            f"got 0x{frame.device_id:02X}/0x{frame.command_id:02X}"
        )

    if frame.error_code:
        try:
            name = ErrorCode(frame.error_code).name
        except ValueError:
            name = "UNKNOWN"
        raise CommandError(
            f"Command 0x{device_id:02X}/0x{command_id:02X} failed with "
            f"error code 0x{frame.error_code:02X} ({name})",
            error_code=frame.error_code,
        )


def parse_battery_voltage(frame: Frame) -> float:
    """Parse battery voltage response.

    Format: [centivolts:2] (big-endian uint16)

    Returns:
        Battery voltage in volts
    """
    if len(frame.payload) < 2:
        raise InvalidResponseError(
            f"Battery voltage response too short: {len(frame.payload)} bytes (need 2)"
        )

    centivolts = struct.unpack(">H", frame.payload[0:2])[0]
    return centivolts / 100


def parse_version(frame: Frame) -> FirmwareVersion:
    """Parse a version response.

    Format: [major:2][minor:2][revision:2] (big-endian uint16 each)
    """
    if len(frame.payload) < 6:
        raise InvalidResponseError(
            f"Version response too short: {len(frame.payload)} bytes (need 6)"
        )

    major, minor, revision = struct.unpack(">HHH", frame.payload[0:6])
    return FirmwareVersion(major=major, minor=minor, revision=revision)
