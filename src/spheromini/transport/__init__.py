"""BLE transport layer."""

from .connection import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT,
    BLEConnection,
    SpheroCharacteristics,
    matches_target,
    resolve_characteristics,
)

__all__ = [
    "BLEConnection",
    "SpheroCharacteristics",
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_ATTEMPTS",
    "matches_target",
    "resolve_characteristics",
]
