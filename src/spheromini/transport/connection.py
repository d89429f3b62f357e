"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    CharacteristicNotFoundError,
    TransportWriteError,
)
from ..protocol import (
    ANTI_DOS_CHARACTERISTIC_UUID,
    ANTI_SLEEP_TOKEN,
    API_V2_CHARACTERISTIC_UUID,
    DFU2_CHARACTERISTIC_UUID,
    DFU_CHARACTERISTIC_UUID,
)

if TYPE_CHECKING:
    from bleak.backends.characteristic import BleakGATTCharacteristic
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class SpheroCharacteristics:
    """The four GATT characteristics the robot must expose."""

    api_v2: BleakGATTCharacteristic
    anti_dos: BleakGATTCharacteristic
    dfu: BleakGATTCharacteristic
    dfu2: BleakGATTCharacteristic


def matches_target(target: str, device: BLEDevice, advertisement: AdvertisementData | None = None) -> bool:
    """Check if a scanned device is the requested target (address or name)."""
    if device.address.upper() == target.upper():
        return True
    if device.name and device.name == target:
        return True
    return advertisement is not None and advertisement.local_name == target


class BLEConnection:
    """Manages BLE connection to a Sphero Mini.

    Features:
    - Target lookup by address or advertised name
    - Connection retries with bleak-retry-connector
    - Characteristic discovery retries with cache invalidation
    - Keep-awake write and notification routing after connect
    """

    def __init__(
            self,
            target: str,
            ble_device: BLEDevice | None = None,
            timeout: float = DEFAULT_TIMEOUT,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
            discovery_attempts: int = DEFAULT_MAX_ATTEMPTS,
            use_services_cache: bool = True,
            disconnected_callback: Callable[[], None] | None = None,
    ):
        """Initialize BLE connection manager.

        Args:
            target: Device address or advertised name
            ble_device: Optional BLEDevice, skips the scan
            timeout: Scan and connection timeout in seconds (default: 10)
            max_attempts: Connection attempts for bleak-retry-connector (default: 5)
            discovery_attempts: Connect + characteristic discovery rounds (default: 5)
            use_services_cache: Enable GATT service caching (default: True)
            disconnected_callback: Called when the link drops unexpectedly
        """
        if max_attempts < 1 or discovery_attempts < 1:
            raise ValueError("Attempt counts must be at least 1")

        self.target = target
        self.ble_device = ble_device
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.discovery_attempts = discovery_attempts
        self.use_services_cache = use_services_cache
        self._disconnected_callback = disconnected_callback

        self._client: BleakClient | None = None
        self._characteristics: SpheroCharacteristics | None = None
        self._expected_disconnect = False

    async def __aenter__(self) -> BLEConnection:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @property
    def address(self) -> str | None:
        """Address of the resolved device, if any."""
        return self.ble_device.address if self.ble_device else None

    async def connect(self, notification_handler: Callable[[bytes], None]) -> None:
        """Connect, discover characteristics and start notifications.

        Args:
            notification_handler: Receives raw API v2 notification bytes

        Raises:
            BLEConnectionError: If the device is not found or connection fails
            CharacteristicNotFoundError: If discovery keeps missing a characteristic
            BLETimeoutError: If connecting times out
        """
        if self._client and self._client.is_connected:
            return  # Already connected

        # A previous disconnect may never have reported back
        self._expected_disconnect = False

        try:
            device = self.ble_device or await self._find_device()
            self.ble_device = device

            _LOGGER.debug(
                "Connecting to %s (max_attempts=%d, discovery_attempts=%d)",
                device.address,
                self.max_attempts,
                self.discovery_attempts,
            )

            self._client = await self._connect_and_discover(device)
            self._expected_disconnect = False
            _LOGGER.info("Connected to %s (%s)", device.name, device.address)

            await self._setup(notification_handler)

        except BLEConnectionError:
            await self._abort()
            raise
        except asyncio.TimeoutError as e:
            await self._abort()
            raise BLETimeoutError(
                f"Connection timeout after {self.timeout}s"
            ) from e
        except Exception as e:
            await self._abort()
            raise BLEConnectionError(
                f"Failed to connect: {e}"
            ) from e

    async def _find_device(self) -> BLEDevice:
        """Scan for the target; the scanner stops on match or timeout."""
        _LOGGER.debug("Scanning for %s (timeout=%.1fs)", self.target, self.timeout)

        device = await BleakScanner.find_device_by_filter(
            lambda d, adv: matches_target(self.target, d, adv),
            timeout=self.timeout,
        )
        if device is None:
            raise BLEConnectionError(
                f"Device {self.target} not found during scan"
            )

        _LOGGER.debug("Found %s at %s", device.name, device.address)
        return device

    async def _connect_and_discover(self, device: BLEDevice) -> BleakClient:
        """Connect and resolve characteristics, retrying partial discoveries."""
        attempt = 0
        while True:
            attempt += 1
            client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=device.name or device.address,
                disconnected_callback=self._on_disconnect,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )

            try:
                self._characteristics = resolve_characteristics(client)
                return client
            except CharacteristicNotFoundError as e:
                _LOGGER.warning(
                    "Discovery incomplete on %s (attempt %d/%d): %s",
                    device.address,
                    attempt,
                    self.discovery_attempts,
                    e,
                )
                await client.clear_cache()
                self._expected_disconnect = True
                await client.disconnect()
                if attempt >= self.discovery_attempts:
                    raise

    async def _setup(self, notification_handler: Callable[[bytes], None]) -> None:
        """Write keep-awake token and start notifications on all characteristics."""
        chars = self._characteristics
        if not self._client or chars is None:
            raise BLEConnectionError("Not connected")

        await self._client.write_gatt_char(chars.anti_dos, ANTI_SLEEP_TOKEN, response=False)
        _LOGGER.debug("Keep-awake token written")

        def api_callback(sender, data: bytearray) -> None:
            notification_handler(bytes(data))

        await self._client.start_notify(chars.api_v2, api_callback)
        for name, char in (("anti-dos", chars.anti_dos), ("dfu", chars.dfu), ("dfu2", chars.dfu2)):
            await self._client.start_notify(char, self._discard_callback(name))

        _LOGGER.debug("Notifications started")

    @staticmethod
    def _discard_callback(name: str) -> Callable[[object, bytearray], None]:
        def callback(sender, data: bytearray) -> None:
            _LOGGER.debug("Discarding %s notification: %s", name, bytes(data).hex())
        return callback

    def _on_disconnect(self, client: BleakClient) -> None:
        """Handle link loss."""
        if self._expected_disconnect:
            _LOGGER.debug("Expected disconnect from %s", self.address)
            self._expected_disconnect = False
            return

        _LOGGER.warning("Unexpected disconnect from %s", self.address)
        self._client = None
        if self._disconnected_callback:
            self._disconnected_callback()

    async def _abort(self) -> None:
        """Drop a half-set-up connection after a failed connect."""
        client, self._client = self._client, None
        self._characteristics = None
        if client and client.is_connected:
            self._expected_disconnect = True
            try:
                await client.disconnect()
            except BleakError as e:
                _LOGGER.debug("Error dropping connection: %s", e)

    async def disconnect(self) -> None:
        """Disconnect from device."""
        if self._client and self._client.is_connected:
            try:
                _LOGGER.debug("Disconnecting from %s", self.address)
                self._expected_disconnect = True
                await self._client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)
        self._client = None
        self._characteristics = None

    async def write_command(self, data: bytes) -> None:
        """Write a frame to the API v2 characteristic.

        Args:
            data: Encoded frame bytes

        Raises:
            BLEConnectionError: If not connected
            TransportWriteError: If the write fails
        """
        if not self._client or not self._client.is_connected or self._characteristics is None:
            raise BLEConnectionError("Not connected")

        try:
            await self._client.write_gatt_char(
                self._characteristics.api_v2,
                data,
                response=False,
            )
        except Exception as e:
            raise TransportWriteError(f"Write failed: {e}") from e

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected


def resolve_characteristics(client: BleakClient) -> SpheroCharacteristics:
    """Look up the four required characteristics by UUID.

    Raises:
        CharacteristicNotFoundError: If any of them is missing
    """
    def find(uuid: str) -> BleakGATTCharacteristic:
        char = client.services.get_characteristic(uuid)
        if char is None:
            raise CharacteristicNotFoundError(uuid)
        return char

    return SpheroCharacteristics(
        api_v2=find(API_V2_CHARACTERISTIC_UUID),
        anti_dos=find(ANTI_DOS_CHARACTERISTIC_UUID),
        dfu=find(DFU_CHARACTERISTIC_UUID),
        dfu2=find(DFU2_CHARACTERISTIC_UUID),
    )
