"""Discovery of nearby Sphero Mini robots."""

from __future__ import annotations

import logging

from bleak import BleakScanner

_LOGGER = logging.getLogger(__name__)

# Sphero Mini robots advertise as "SM-XXXX"
NAME_PREFIX = "SM-"


async def discover_devices(
        timeout: float = 10.0,
        name_prefix: str | None = NAME_PREFIX,
) -> dict[str, str]:
    """Scan for robots in range.

    Args:
        timeout: Scan duration in seconds (default: 10)
        name_prefix: Only keep devices whose name starts with this prefix,
            or None to return every device

    Returns:
        Mapping of device address to advertised name ("UNKNOWN" if unnamed)
    """
    _LOGGER.debug("Scanning for %.1fs", timeout)
    found = await BleakScanner.discover(timeout=timeout, return_adv=True)

    devices: dict[str, str] = {}
    for address, (device, advertisement) in found.items():
        name = advertisement.local_name or device.name or "UNKNOWN"
        if name_prefix is not None and not name.startswith(name_prefix):
            continue
        devices[address] = name

    _LOGGER.debug("Found %d device(s)", len(devices))
    return devices
