"""Request/response correlation over the API v2 characteristic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from ..exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    CommandInProgressError,
    TransportWriteError,
)
from .commands import Flag
from .packet import Frame, encode_frame

_LOGGER = logging.getLogger(__name__)

RESPONSE_TIMEOUT = 10.0


class DispatcherState(Enum):
    """Whether a command is awaiting its response."""

    IDLE = "idle"
    PENDING = "pending"


@dataclass
class PendingCommand:
    """The one command currently awaiting a response."""

    sequence: int
    future: asyncio.Future[Frame]


class CommandDispatcher:
    """Sends commands and matches responses by sequence number.

    Only one command may await a response at a time; responses are not
    ordered reliably enough by the firmware to pipeline requests.
    """

    def __init__(
            self,
            write: Callable[[bytes], Awaitable[None]],
            timeout: float = RESPONSE_TIMEOUT,
    ):
        """Initialize dispatcher.

        Args:
            write: Coroutine function writing raw bytes to the transport
            timeout: Default response timeout in seconds (default: 10)
        """
        self._write = write
        self.timeout = timeout
        self._sequence = 0
        self._pending: PendingCommand | None = None

    @property
    def state(self) -> DispatcherState:
        return DispatcherState.IDLE if self._pending is None else DispatcherState.PENDING

    @property
    def pending_sequence(self) -> int | None:
        return None if self._pending is None else self._pending.sequence

    def _next_sequence(self) -> int:
        self._sequence = (self._sequence + 1) % 256
        return self._sequence

    async def send(
            self,
            device_id: int,
            command_id: int,
            payload: bytes = b"",
            expect_response: bool = True,
            timeout: float | None = None,
    ) -> Frame | None:
        """Send a command and optionally wait for its response.

        Args:
            device_id: Target device id
            command_id: Command id within the device
            payload: Command arguments
            expect_response: Wait for the matching response frame
            timeout: Override the default response timeout

        Returns:
            Response frame, or None if no response was requested

        Raises:
            CommandInProgressError: If another command is still pending
            TransportWriteError: If the write fails
            BLETimeoutError: If no matching response arrives in time
        """
        if self._pending is not None:
            raise CommandInProgressError(
                f"Command with sequence {self._pending.sequence} is still pending"
            )

        sequence = self._next_sequence()
        flags = Flag.RESETS_INACTIVITY_TIMEOUT
        if expect_response:
            flags |= Flag.REQUESTS_RESPONSE

        data = encode_frame(Frame(
            flags=flags,
            device_id=device_id,
            command_id=command_id,
            sequence=sequence,
            payload=bytes(payload),
        ))

        # Register before writing so a fast response cannot be missed
        pending = None
        if expect_response:
            pending = PendingCommand(sequence, asyncio.get_running_loop().create_future())
            self._pending = pending

        _LOGGER.debug("TX seq=%d: %s", sequence, data.hex())

        try:
            await self._write(data)
        except TransportWriteError:
            self._clear(pending)
            raise
        except asyncio.CancelledError:
            self._clear(pending)
            raise
        except Exception as e:
            self._clear(pending)
            raise TransportWriteError(f"Write failed: {e}") from e

        if pending is None:
            return None

        wait = self.timeout if timeout is None else timeout
        try:
            frame = await asyncio.wait_for(pending.future, timeout=wait)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(
                f"No response for sequence {sequence} within {wait}s"
            ) from e
        finally:
            self._clear(pending)

        _LOGGER.debug("RX seq=%d: %r", sequence, frame)
        return frame

    def handle_frame(self, frame: Frame) -> None:
        """Deliver a decoded frame to the pending command, if it matches."""
        pending = self._pending
        if pending is None or frame.sequence != pending.sequence:
            _LOGGER.debug(
                "Discarding frame (pending=%s): %r",
                self.pending_sequence,
                frame,
            )
            return

        self._pending = None
        if not pending.future.done():
            pending.future.set_result(frame)

    def reset(self) -> None:
        """Fail any pending command, e.g. after the link dropped."""
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(BLEConnectionError("Disconnected"))

    def _clear(self, pending: PendingCommand | None) -> None:
        if pending is not None and self._pending is pending:
            self._pending = None
