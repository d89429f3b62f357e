"""Sphero API v2 constants and command payload builders."""

from __future__ import annotations

from enum import IntEnum, IntFlag

# Frame markers
START_OF_PACKET = 0x8D
END_OF_PACKET = 0xD8


class Flag(IntFlag):
    """Frame flag bits."""

    IS_RESPONSE = 0x01
    REQUESTS_RESPONSE = 0x02
    REQUESTS_ONLY_ERROR_RESPONSE = 0x04
    RESETS_INACTIVITY_TIMEOUT = 0x08


class DeviceId(IntEnum):
    """Logical subsystems addressed by the device id byte."""

    SYSTEM_INFO = 0x11
    POWER = 0x13
    DRIVING = 0x16
    USER_IO = 0x1A


class PowerCommand(IntEnum):
    """Commands of the power device (0x13)."""

    DEEP_SLEEP = 0x00
    SLEEP = 0x01
    BATTERY_VOLTAGE = 0x03
    WAKE = 0x0D


class DrivingCommand(IntEnum):
    """Commands of the driving device (0x16)."""

    DRIVE_WITH_HEADING = 0x07


class UserIOCommand(IntEnum):
    """Commands of the user I/O device (0x1A)."""

    ALL_LEDS = 0x0E


class SystemInfoCommand(IntEnum):
    """Commands of the system info device (0x11)."""

    BOOTLOADER_VERSION = 0x01


class ErrorCode(IntEnum):
    """Error codes carried by response frames."""

    SUCCESS = 0x00
    BAD_DEVICE_ID = 0x01
    BAD_COMMAND_ID = 0x02
    NOT_YET_IMPLEMENTED = 0x03
    COMMAND_IS_RESTRICTED = 0x04
    BAD_DATA_LENGTH = 0x05
    COMMAND_FAILED = 0x06
    BAD_PARAMETER_VALUE = 0x07
    BUSY = 0x08
    BAD_TARGET_ID = 0x09
    TARGET_UNAVAILABLE = 0x0A


# GATT characteristics
_UUID_SUFFIX = "-574f-4f20-5370-6865726f2121"
API_V2_CHARACTERISTIC_UUID = "00010002" + _UUID_SUFFIX
ANTI_DOS_CHARACTERISTIC_UUID = "00020005" + _UUID_SUFFIX
DFU_CHARACTERISTIC_UUID = "00020002" + _UUID_SUFFIX
DFU2_CHARACTERISTIC_UUID = "00020004" + _UUID_SUFFIX

# Written to the anti-DoS characteristic to stop the firmware's 10s auto-sleep
ANTI_SLEEP_TOKEN = b"usetheforce...band"

# LED masks for UserIOCommand.ALL_LEDS
LED_MASK_MAIN = 0x0E
LED_MASK_BACKLIGHT = 0x01

MAX_HEADING = 359
MAX_SPEED = 255


def _check_u8(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} out of range: {value} (must be 0-255)")


def build_led_color_payload(red: int, green: int, blue: int) -> bytes:
    """Build payload to set the main RGB LEDs.

    Format:
        [mask:2][red:1][green:1][blue:1]
        - mask: 0x000E (big-endian) selects the red/green/blue channels
    """
    _check_u8("red", red)
    _check_u8("green", green)
    _check_u8("blue", blue)
    return bytes([0x00, LED_MASK_MAIN, red, green, blue])


def build_backlight_payload(enabled: bool) -> bytes:
    """Build payload to switch the rear (heading) LED on or off.

    Format:
        [mask:2][brightness:1]
    """
    return bytes([0x00, LED_MASK_BACKLIGHT, 0xFF if enabled else 0x00])


def build_roll_payload(heading: int, speed: int) -> bytes:
    """Build payload to drive towards a heading.

    Args:
        heading: Heading in degrees (0-359)
        speed: Speed (0-255)

    Returns:
        Payload bytes: [speed_low, heading_high, heading_low, speed_high]
    """
    if not 0 <= heading <= MAX_HEADING:
        raise ValueError(f"heading out of range: {heading} (must be 0-{MAX_HEADING})")
    if not 0 <= speed <= MAX_SPEED:
        raise ValueError(f"speed out of range: {speed} (must be 0-{MAX_SPEED})")

    return bytes([
        speed & 0xFF,
        (heading >> 8) & 0xFF,
        heading & 0xFF,
        (speed >> 8) & 0xFF,
    ])
