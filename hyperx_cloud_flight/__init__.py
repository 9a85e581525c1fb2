"""HyperX Cloud Flight headset monitor."""

from hyperx_cloud_flight.errors import (
    CloudFlightError,
    DeviceDisconnectedError,
    InvalidStateError,
    TransportError,
    WriteFailureError,
)
from hyperx_cloud_flight.protocol import (
    Event,
    EventType,
    battery_level,
    battery_percent,
    parse_report,
)
from hyperx_cloud_flight.device import CloudFlightDevice, HidHost
from hyperx_cloud_flight.scheduler import BatteryPollScheduler
from hyperx_cloud_flight.session import CloudFlightSession, SessionState
from hyperx_cloud_flight.monitor import HeadsetMonitor

__all__ = [
    "BatteryPollScheduler",
    "CloudFlightDevice",
    "CloudFlightError",
    "CloudFlightSession",
    "DeviceDisconnectedError",
    "Event",
    "EventType",
    "HeadsetMonitor",
    "HidHost",
    "InvalidStateError",
    "SessionState",
    "TransportError",
    "WriteFailureError",
    "battery_level",
    "battery_percent",
    "parse_report",
]
