"""Reassembly of frames from BLE notification fragments."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..exceptions import ProtocolError
from .commands import END_OF_PACKET, START_OF_PACKET
from .packet import Frame, decode_frame

_LOGGER = logging.getLogger(__name__)


class NotificationFramer:
    """Reassembles frames from API v2 notifications.

    Notifications may carry a single byte or several. A start marker always
    begins a fresh frame, dropping whatever partial frame was buffered. The
    first end marker after a start marker completes the frame.

    The protocol has no escaping here, so a marker value anywhere inside a
    frame breaks it:

    - 0xD8 in the payload, sequence or checksum ends the frame early; the
      truncated frame then fails the checksum and is dropped
    - 0x8D in the payload, sequence or checksum restarts the buffer, so the
      frame is lost

    A lost response surfaces as a timeout in CommandDispatcher.send().
    """

    def __init__(self, on_frame: Callable[[Frame], None]):
        """Initialize framer.

        Args:
            on_frame: Called with each successfully decoded frame
        """
        self._on_frame = on_frame
        self._buffer: bytearray | None = None

    @property
    def in_frame(self) -> bool:
        """Check if a partial frame is currently buffered."""
        return self._buffer is not None

    def reset(self) -> None:
        """Discard any partial frame."""
        self._buffer = None

    def feed(self, data: bytes) -> None:
        """Process one notification fragment."""
        for byte in data:
            if byte == START_OF_PACKET:
                if self._buffer:
                    _LOGGER.debug("Discarding incomplete frame: %s", self._buffer.hex())
                self._buffer = bytearray([byte])
                continue

            if self._buffer is None:
                _LOGGER.debug("Ignoring byte outside frame: 0x%02X", byte)
                continue

            self._buffer.append(byte)

            if byte == END_OF_PACKET:
                raw = bytes(self._buffer)
                self._buffer = None
                self._emit(raw)

    def _emit(self, raw: bytes) -> None:
        try:
            frame = decode_frame(raw)
        except ProtocolError as e:
            _LOGGER.debug("Dropping frame %s: %s", raw.hex(), e)
            return

        self._on_frame(frame)
