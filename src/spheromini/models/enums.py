from __future__ import annotations

from enum import Enum


class DeviceState(Enum):
    """Lifecycle of a SpheroMini connection.

    Only READY accepts commands.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    SLEEPING = "sleeping"


class DeferredAction(Enum):
    """Follow-up run by SpheroMini.run_for() after the wait elapses."""
    NONE = "none"
    LED_OFF = "led_off"  # Switch main LEDs off after set_led_color
    STOP = "stop"        # Stop rolling after roll
