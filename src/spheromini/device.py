"""Main Sphero Mini BLE device class."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .exceptions import DeviceNotReadyError, SpheroError
from .models.enums import DeferredAction, DeviceState
from .models.firmware import FirmwareVersion
from .protocol import (
    RESPONSE_TIMEOUT,
    CommandDispatcher,
    DeviceId,
    DrivingCommand,
    Frame,
    NotificationFramer,
    PowerCommand,
    SystemInfoCommand,
    UserIOCommand,
    build_backlight_payload,
    build_led_color_payload,
    build_roll_payload,
    parse_battery_voltage,
    parse_version,
    validate_response,
)
from .transport import DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT, BLEConnection

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)


class SpheroMini:
    """Sphero Mini robot.

    Main API for driving a Sphero Mini over BLE.

    Usage:
        async with SpheroMini("AA:BB:CC:DD:EE:FF") as ball:
            await ball.set_led_color(235, 64, 52)
            await ball.run_for(1.0)           # LEDs switch off afterwards
            await ball.roll(heading=0, speed=150)
            await ball.run_for(1.0)           # stops rolling afterwards
            await ball.sleep()
    """

    # Time the robot needs to come to rest after a stop
    STOP_SETTLE_TIME = 0.5

    def __init__(
            self,
            target: str,
            ble_device: BLEDevice | None = None,
            timeout: float = DEFAULT_TIMEOUT,
            response_timeout: float = RESPONSE_TIMEOUT,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
            discovery_attempts: int = DEFAULT_MAX_ATTEMPTS,
            use_services_cache: bool = True,
            wake_on_connect: bool = True,
    ):
        """Initialize Sphero Mini device.

        Args:
            target: Device address or advertised name (e.g. "SM-1A2B")
            ble_device: Optional BLEDevice, skips the scan
            timeout: Scan and connection timeout in seconds (default: 10)
            response_timeout: Command response timeout in seconds (default: 10)
            max_attempts: Connection attempts (default: 5)
            discovery_attempts: Characteristic discovery rounds (default: 5)
            use_services_cache: Enable GATT service caching (default: True)
            wake_on_connect: Send wake when entering the context manager
        """
        self.target = target
        self.wake_on_connect = wake_on_connect
        self._connection = BLEConnection(
            target,
            ble_device=ble_device,
            timeout=timeout,
            max_attempts=max_attempts,
            discovery_attempts=discovery_attempts,
            use_services_cache=use_services_cache,
            disconnected_callback=self._handle_disconnect,
        )
        self._dispatcher = CommandDispatcher(self._write, timeout=response_timeout)
        self._framer = NotificationFramer(self._dispatcher.handle_frame)
        self._command_lock = asyncio.Lock()

        self._state = DeviceState.DISCONNECTED
        self._deferred = DeferredAction.NONE
        self._backlight_enabled = False
        self._heading = 0
        self.last_error: SpheroError | None = None

    async def __aenter__(self) -> SpheroMini:
        """Connect and optionally wake the robot."""
        await self.connect()
        if self.wake_on_connect:
            try:
                await self.wake()
            except SpheroError:
                await self.disconnect()
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect from device."""
        await self.disconnect()

    @property
    def state(self) -> DeviceState:
        """Get current lifecycle state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the robot accepts commands."""
        return self._state is DeviceState.READY

    @property
    def backlight_enabled(self) -> bool:
        """Check if the rear LED is switched on."""
        return self._backlight_enabled

    @property
    def deferred_action(self) -> DeferredAction:
        """Get the action run_for() will perform next."""
        return self._deferred

    async def connect(self) -> None:
        """Connect to the robot and set up notifications.

        Raises:
            BLEConnectionError: If the robot cannot be found or connected
        """
        if self._state is DeviceState.READY:
            return

        self._state = DeviceState.CONNECTING
        self._framer.reset()
        try:
            await self._connection.connect(self._framer.feed)
        except SpheroError as e:
            self._state = DeviceState.DISCONNECTED
            self.last_error = e
            raise

        self._state = DeviceState.READY
        _LOGGER.info("%s ready", self.target)

    async def disconnect(self) -> None:
        """Close the connection without putting the robot to sleep."""
        await self._teardown(
            DeviceState.SLEEPING if self._state is DeviceState.SLEEPING else DeviceState.DISCONNECTED
        )

    async def _teardown(self, state: DeviceState) -> None:
        self._dispatcher.reset()
        self._framer.reset()
        self._deferred = DeferredAction.NONE
        try:
            await self._connection.disconnect()
        finally:
            self._state = state

    def _handle_disconnect(self) -> None:
        """Link dropped underneath us."""
        self._dispatcher.reset()
        self._framer.reset()
        self._state = DeviceState.DISCONNECTED

    async def _write(self, data: bytes) -> None:
        await self._connection.write_command(data)

    async def _send(
            self,
            device_id: int,
            command_id: int,
            payload: bytes = b"",
            expect_response: bool = True,
    ) -> Frame | None:
        """Send one command and validate its response.

        Commands are serialized; only one is ever outstanding.

        Raises:
            DeviceNotReadyError: If the robot is not READY
        """
        async with self._command_lock:
            if self._state is not DeviceState.READY:
                raise DeviceNotReadyError(
                    f"Device not ready (state: {self._state.value}) - not connected"
                )

            try:
                frame = await self._dispatcher.send(
                    device_id,
                    command_id,
                    payload,
                    expect_response=expect_response,
                )
                if frame is not None:
                    validate_response(frame, device_id, command_id)
            except SpheroError as e:
                self.last_error = e
                raise

        return frame

    async def wake(self) -> None:
        """Bring the robot out of sleep mode."""
        _LOGGER.debug("Wake")
        await self._send(DeviceId.POWER, PowerCommand.WAKE)

    async def sleep(self) -> None:
        """Put the robot to sleep and close the connection.

        The backlight is switched off first if it was enabled. The
        connection is closed even if the sleep command fails.
        """
        await self._power_down(PowerCommand.SLEEP)

    async def deep_sleep(self) -> None:
        """Put the robot into deep sleep and close the connection."""
        await self._power_down(PowerCommand.DEEP_SLEEP)

    async def _power_down(self, command: PowerCommand) -> None:
        if not self.is_ready:
            raise DeviceNotReadyError(
                f"Device not ready (state: {self._state.value}) - not connected"
            )

        _LOGGER.info("Sending %s to %s", command.name, self.target)
        try:
            if self._backlight_enabled:
                try:
                    await self.disable_backlight()
                except SpheroError as e:
                    _LOGGER.warning("Unable to disable backlight: %s", e)

            await self._send(DeviceId.POWER, command)
        finally:
            await self._teardown(DeviceState.SLEEPING)

    async def get_battery_voltage(self) -> float:
        """Read battery voltage.

        Returns:
            Battery voltage in volts
        """
        frame = await self._send(DeviceId.POWER, PowerCommand.BATTERY_VOLTAGE)
        voltage = parse_battery_voltage(frame)
        _LOGGER.debug("Battery voltage: %.2fV", voltage)
        return voltage

    async def get_bootloader_version(self) -> FirmwareVersion:
        """Read bootloader version."""
        frame = await self._send(DeviceId.SYSTEM_INFO, SystemInfoCommand.BOOTLOADER_VERSION)
        version = parse_version(frame)
        _LOGGER.debug("Bootloader version: %s", version)
        return version

    async def set_led_color(self, red: int, green: int, blue: int) -> None:
        """Set the main LEDs; run_for() switches them off again.

        Args:
            red: Red channel (0-255)
            green: Green channel (0-255)
            blue: Blue channel (0-255)
        """
        await self._set_led_color(red, green, blue)
        self._deferred = DeferredAction.LED_OFF

    async def _set_led_color(self, red: int, green: int, blue: int) -> None:
        _LOGGER.debug("Set LED color r=%d g=%d b=%d", red, green, blue)
        payload = build_led_color_payload(red, green, blue)
        await self._send(DeviceId.USER_IO, UserIOCommand.ALL_LEDS, payload)

    async def enable_backlight(self) -> None:
        """Switch on the rear LED, handy to see the heading."""
        await self._send(DeviceId.USER_IO, UserIOCommand.ALL_LEDS, build_backlight_payload(True))
        self._backlight_enabled = True

    async def disable_backlight(self) -> None:
        """Switch off the rear LED."""
        await self._send(DeviceId.USER_IO, UserIOCommand.ALL_LEDS, build_backlight_payload(False))
        self._backlight_enabled = False

    async def roll(self, heading: int, speed: int) -> None:
        """Roll towards a heading; run_for() stops the robot again.

        Args:
            heading: Heading in degrees (0-359)
            speed: Speed (0-255)
        """
        await self._roll(heading, speed)
        self._deferred = DeferredAction.STOP

    async def stop(self, heading: int | None = None) -> None:
        """Stop rolling, keeping the current heading unless given."""
        await self._roll(self._heading if heading is None else heading, 0)
        self._deferred = DeferredAction.NONE

    async def _roll(self, heading: int, speed: int) -> None:
        _LOGGER.debug("Roll heading=%d speed=%d", heading, speed)
        payload = build_roll_payload(heading, speed)
        await self._send(DeviceId.DRIVING, DrivingCommand.DRIVE_WITH_HEADING, payload)
        self._heading = heading

    async def run_for(self, seconds: float) -> None:
        """Wait, then undo the last timed command.

        After set_led_color() the LEDs are switched off; after roll() the
        robot is stopped. Does nothing else if no action is pending.
        """
        await asyncio.sleep(seconds)

        action, self._deferred = self._deferred, DeferredAction.NONE
        if action is DeferredAction.LED_OFF:
            await self._set_led_color(0, 0, 0)
        elif action is DeferredAction.STOP:
            await self._roll(self._heading, 0)
            await asyncio.sleep(self.STOP_SETTLE_TIME)
