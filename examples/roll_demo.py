"""Scan for Sphero Mini robots or run a short LED and roll demo.

Usage:
    uv run python examples/roll_demo.py --scan
    uv run python examples/roll_demo.py --address AA:BB:CC:DD:EE:FF
    uv run python examples/roll_demo.py --address SM-1A2B --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from spheromini import SpheroMini, discover_devices


async def scan(duration: float) -> None:
    """Print robots found during the scan."""
    print(f"Scanning for {duration:.1f}s...")
    devices = await discover_devices(timeout=duration)
    if not devices:
        print("No Sphero Mini found")
        return

    for address, name in sorted(devices.items()):
        print(f"Found device: {name}, address: {address}")


async def demo(target: str) -> None:
    """Cycle the LEDs, roll forward and back, then sleep."""
    async with SpheroMini(target) as ball:
        print(f"Battery: {await ball.get_battery_voltage():.2f}V")

        # The backlight shows which way the robot is headed
        await ball.enable_backlight()
        await asyncio.sleep(2)

        for red, green, blue in ((235, 64, 52), (52, 235, 88), (52, 122, 235)):
            await ball.set_led_color(red, green, blue)
            await ball.run_for(1.0)

        await ball.roll(heading=0, speed=150)
        await ball.run_for(1.0)
        await ball.roll(heading=180, speed=150)
        await ball.run_for(1.0)

        await ball.sleep()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sphero Mini scan and demo.")
    parser.add_argument(
        "--scan",
        action="store_true",
        help="Scan for Sphero Mini robots.",
    )
    parser.add_argument(
        "--address",
        help="Address or name of the robot to drive.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=10.0,
        help="Scan duration in seconds. Default: 10",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log protocol traffic.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.scan:
            asyncio.run(scan(args.duration))
        if args.address:
            asyncio.run(demo(args.address))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
