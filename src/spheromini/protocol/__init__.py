"""Sphero API v2 protocol implementation."""

from .commands import (
    ANTI_DOS_CHARACTERISTIC_UUID,
    ANTI_SLEEP_TOKEN,
    API_V2_CHARACTERISTIC_UUID,
    DFU2_CHARACTERISTIC_UUID,
    DFU_CHARACTERISTIC_UUID,
    END_OF_PACKET,
    START_OF_PACKET,
    DeviceId,
    DrivingCommand,
    ErrorCode,
    Flag,
    PowerCommand,
    SystemInfoCommand,
    UserIOCommand,
    build_backlight_payload,
    build_led_color_payload,
    build_roll_payload,
)
from .dispatcher import RESPONSE_TIMEOUT, CommandDispatcher, DispatcherState
from .framing import NotificationFramer
from .packet import Frame, calculate_checksum, decode_frame, encode_frame
from .responses import parse_battery_voltage, parse_version, validate_response

__all__ = [
    "START_OF_PACKET",
    "END_OF_PACKET",
    "API_V2_CHARACTERISTIC_UUID",
    "ANTI_DOS_CHARACTERISTIC_UUID",
    "DFU_CHARACTERISTIC_UUID",
    "DFU2_CHARACTERISTIC_UUID",
    "ANTI_SLEEP_TOKEN",
    "RESPONSE_TIMEOUT",
    "Flag",
    "DeviceId",
    "PowerCommand",
    "DrivingCommand",
    "UserIOCommand",
    "SystemInfoCommand",
    "ErrorCode",
    "Frame",
    "calculate_checksum",
    "encode_frame",
    "decode_frame",
    "NotificationFramer",
    "CommandDispatcher",
    "DispatcherState",
    "build_led_color_payload",
    "build_backlight_payload",
    "build_roll_payload",
    "validate_response",
    "parse_battery_voltage",
    "parse_version",
]
