"""Frame encoding and decoding for the Sphero API v2.

Frame layout::

    +-------+-------+--------+---------+----------+---------+---------+----------+-----+
    |  SOP  | Flags | Device | Command | Sequence | (Error) | Payload | Checksum | EOP |
    | 0x8D  | 1     | 1      | 1       | 1        | 1       | var.    | 1        | 0xD8|
    +-------+-------+--------+---------+----------+---------+---------+----------+-----+

- Error: present only on response frames (IS_RESPONSE flag set)
- Checksum: ~(sum(flags..payload) % 256) & 0xFF, start marker excluded
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..exceptions import ChecksumError, InvalidResponseError
from .commands import END_OF_PACKET, START_OF_PACKET, Flag

# SOP + flags + device + command + sequence + checksum + EOP
MIN_FRAME_LENGTH = 7


@dataclass(frozen=True, slots=True)
class Frame:
    """A single protocol message."""

    flags: Flag
    device_id: int
    command_id: int
    sequence: int
    payload: bytes = field(default_factory=bytes)
    error_code: int | None = None

    def __post_init__(self) -> None:
        # The first byte after the sequence of a response is its error code
        if Flag.IS_RESPONSE in self.flags and self.error_code is None and self.payload:
            raise ValueError("Response frame with a payload needs an error_code")

    @property
    def is_response(self) -> bool:
        return Flag.IS_RESPONSE in self.flags

    def __repr__(self) -> str:
        error = "" if self.error_code is None else f", error=0x{self.error_code:02X}"
        return (
            f"Frame(flags=0x{int(self.flags):02X}, device=0x{self.device_id:02X}, "
            f"command=0x{self.command_id:02X}, seq={self.sequence}{error}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def calculate_checksum(body: bytes) -> int:
    """Calculate the checksum over flags..payload (start marker excluded)."""
    return ~(sum(body) % 256) & 0xFF


def encode_frame(frame: Frame) -> bytes:
    """Encode a frame into wire bytes.

    Args:
        frame: Frame to encode

    Returns:
        Bytes starting with START_OF_PACKET and ending with END_OF_PACKET
    """
    body = bytearray([
        int(frame.flags) & 0xFF,
        frame.device_id & 0xFF,
        frame.command_id & 0xFF,
        frame.sequence & 0xFF,
    ])
    if frame.error_code is not None:
        body.append(frame.error_code & 0xFF)
    body.extend(frame.payload)

    return bytes([START_OF_PACKET]) + bytes(body) + bytes([calculate_checksum(body), END_OF_PACKET])


def decode_frame(data: bytes) -> Frame:
    """Decode and validate one complete frame.

    Args:
        data: Frame bytes including start and end markers

    Returns:
        Decoded Frame

    Raises:
        InvalidResponseError: If the frame is too short or markers are missing
        ChecksumError: If the checksum does not match
    """
    if len(data) < MIN_FRAME_LENGTH:
        raise InvalidResponseError(
            f"Frame too short: {len(data)} bytes (need at least {MIN_FRAME_LENGTH})"
        )
    if data[0] != START_OF_PACKET or data[-1] != END_OF_PACKET:
        raise InvalidResponseError(
            f"Frame markers invalid: 0x{data[0]:02X}..0x{data[-1]:02X}"
        )

    body = data[1:-2]
    checksum = data[-2]
    expected = calculate_checksum(body)
    if checksum != expected:
        raise ChecksumError(
            f"Checksum mismatch: expected 0x{expected:02X}, got 0x{checksum:02X}"
        )

    flags = Flag(body[0])
    rest = bytes(body[4:])
    error_code = None
    if Flag.IS_RESPONSE in flags and rest:
        error_code = rest[0]
        rest = rest[1:]

    return Frame(
        flags=flags,
        device_id=body[1],
        command_id=body[2],
        sequence=body[3],
        payload=rest,
        error_code=error_code,
    )
