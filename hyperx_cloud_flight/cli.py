#!/usr/bin/env python3
"""Command-line interface for watching HyperX Cloud Flight headset events."""

import sys
import json
import logging
import argparse

from hyperx_cloud_flight.config import Config
from hyperx_cloud_flight.device import HidHost
from hyperx_cloud_flight.errors import CloudFlightError
from hyperx_cloud_flight.monitor import HeadsetMonitor
from hyperx_cloud_flight.protocol import Event
from hyperx_cloud_flight.session import CloudFlightSession


def format_event(event: Event, as_json: bool = False) -> str:
    """Render one event for the terminal or as a JSON line."""
    if as_json:
        entry = {"event": event.kind.name.lower()}
        if event.level is not None:
            entry["level"] = event.level
        return json.dumps(entry)
    if event.level is not None:
        return f"{event.kind.name.lower()}: {event.level}%"
    return event.kind.name.lower()


def _list_devices(as_json: bool) -> int:
    host = HidHost()
    host.start()
    try:
        devices = host.list_devices()
    finally:
        host.stop()

    if as_json:
        print(json.dumps(devices))
        return 0

    if not devices:
        print("No HyperX devices found.")
        print("\nTroubleshooting:")
        print("  1. Make sure the wireless dongle is plugged in")
        print("  2. Check udev rules are installed (see README)")
        print("  3. Try running with sudo")
        return 0

    print(f"Found {len(devices)} HyperX USB interface(s):\n")
    for dev in devices:
        for key, val in dev.items():
            print(f"  {key}: {val}")
        print()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="HyperX Cloud Flight Headset Monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  %(prog)s              Print headset events until Ctrl+C
  %(prog)s --json       Print events as JSON lines
  %(prog)s --list       List all HyperX HID interfaces
  %(prog)s --debug      Also log protocol details
""",
    )
    parser.add_argument("--list", "-l", action="store_true", help="List all HyperX devices")
    parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--interval", "-i", type=int, default=None,
        help="Battery query interval in seconds (default: from config, 300)",
    )

    args = parser.parse_args()
    config = Config()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.list:
            return _list_devices(args.json)

        options = config.session_options()
        if args.interval is not None:
            options["poll_interval"] = args.interval

        def on_event(event: Event) -> None:
            print(format_event(event, args.json), flush=True)

        session = CloudFlightSession(on_event, **options)
        monitor = HeadsetMonitor(session, rescan_delay=config.device["rescan_delay_seconds"])
        monitor.watch_hotplug()

        if not args.json:
            print("Listening for headset events (Ctrl+C to stop)...\n")
        monitor.run()
    except KeyboardInterrupt:
        if not args.json:
            print("\nStopped.")
    except CloudFlightError as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
