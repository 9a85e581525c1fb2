"""HyperX Cloud Flight protocol constants, packet builders, and report parsers.

The headset reports carry no type tag: the length of an input report is
the only thing that tells a power/mute report from a volume or battery
report. Lengths that are not listed here are ignored.

This module is pure-data with no I/O operations. All HID communication
is handled by device.py.
"""

from enum import Enum, auto
from typing import NamedTuple, Optional, Sequence

# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

# Kingston Technology (HyperX)
VENDOR_ID = 0x0951
PRODUCT_IDS = (0x16C4, 0x1723)

# Vendor ID string used in udev events
VENDOR_ID_STR = "0951"

REPORT_SIZE = 32

# Report kinds, by length
REPORT_LEN_STATUS = 2
REPORT_LEN_VOLUME = 5
REPORT_LEN_BATTERY = 20

# Status report (length 2)
STATUS_POWER = 0x64
POWER_ON_CODE = 0x01
POWER_OFF_CODE = 0x03
STATUS_MUTE = 0x65
MUTE_ON_CODE = 0x04

# Volume report (length 5), byte 1
VOLUME_UP_CODE = 0x01
VOLUME_DOWN_CODE = 0x02

# Battery report (length 20), byte 3 is the state, byte 4 the raw value
BATTERY_STATE_LOW = 0x0E
BATTERY_STATE_HIGH = 0x0F
BATTERY_STATES_CHARGING = (0x10, 0x11)
CHARGING_VALUE_MIN = 20

# Battery query (output report)
BATTERY_QUERY_REPORT_ID = 0x21
BATTERY_QUERY_PAYLOAD = (0xFF, 0x05)
BATTERY_QUERY_LENGTH = 19  # report id included


# =============================================================================
# BATTERY CALIBRATION
# =============================================================================

# (first raw value of the range, percent). A range ends where the next
# one starts; the last range runs up to 255. The widths are not uniform.
BATTERY_TABLE_LOW = (
    (0, 10),
    (90, 15),
    (120, 20),
    (149, 25),
    (160, 30),
    (170, 35),
    (180, 40),
    (190, 45),
    (200, 50),
    (210, 55),
    (220, 60),
    (240, 65),
)

BATTERY_TABLE_HIGH = (
    (0, 70),
    (20, 75),
    (50, 80),
    (70, 85),
    (100, 90),
    (120, 95),
    (130, 100),
)

_BATTERY_TABLES = {
    BATTERY_STATE_LOW: BATTERY_TABLE_LOW,
    BATTERY_STATE_HIGH: BATTERY_TABLE_HIGH,
}


def battery_percent(state: int, value: int) -> int:
    """Translate a battery (state, raw value) pair into a percentage.

    Args:
        state: Battery state byte (0x0E for the lower half of the charge
            curve, 0x0F for the upper half).
        value: Raw value byte, 0-255.

    Returns:
        Percent in steps of 5, or 0 for an unknown state byte.
    """
    table = _BATTERY_TABLES.get(state)
    if table is None or not 0 <= value <= 255:
        return 0

    for start, percent in reversed(table):
        if value >= start:
            return percent
    return 0


# =============================================================================
# EVENTS
# =============================================================================

class EventType(Enum):
    """Kinds of events decoded from headset reports."""
    POWER_ON = auto()
    POWER_OFF = auto()
    MUTED = auto()
    UNMUTED = auto()
    VOLUME_UP = auto()
    VOLUME_DOWN = auto()
    BATTERY_LEVEL = auto()
    BATTERY_CHARGING = auto()
    IGNORE = auto()


class Event(NamedTuple):
    """A decoded headset event.

    Only BATTERY_LEVEL events carry a level; it is None for every other kind.
    """
    kind: EventType
    level: Optional[int] = None

    def __str__(self) -> str:
        if self.kind is EventType.BATTERY_LEVEL:
            return f"{self.kind.name} - {self.level}"
        return self.kind.name


POWER_ON = Event(EventType.POWER_ON)
POWER_OFF = Event(EventType.POWER_OFF)
MUTED = Event(EventType.MUTED)
UNMUTED = Event(EventType.UNMUTED)
VOLUME_UP = Event(EventType.VOLUME_UP)
VOLUME_DOWN = Event(EventType.VOLUME_DOWN)
BATTERY_CHARGING = Event(EventType.BATTERY_CHARGING)
IGNORE = Event(EventType.IGNORE)


def battery_level(level: int) -> Event:
    """Build a BATTERY_LEVEL event, validating the 0-100 range."""
    if not 0 <= level <= 100:
        raise ValueError(f"Battery level out of range: {level}")
    return Event(EventType.BATTERY_LEVEL, level)


# =============================================================================
# PACKET BUILDERS
# =============================================================================

def build_battery_query_packet() -> bytes:
    """Build the battery query output report.

    Layout: report id 0x21, payload 0xFF 0x05, zero padded to 19 bytes.
    The answer arrives later as a length-20 input report.
    """
    packet = [0x00] * BATTERY_QUERY_LENGTH
    packet[0] = BATTERY_QUERY_REPORT_ID
    for i, byte in enumerate(BATTERY_QUERY_PAYLOAD):
        packet[i + 1] = byte
    return bytes(packet)


# =============================================================================
# RESPONSE PARSERS
# =============================================================================

def _parse_status(data: Sequence[int]) -> Event:
    if data[0] == STATUS_POWER:
        if data[1] == POWER_ON_CODE:
            return POWER_ON
        if data[1] == POWER_OFF_CODE:
            return POWER_OFF
        return IGNORE
    if data[0] == STATUS_MUTE:
        if data[1] == MUTE_ON_CODE:
            return MUTED
        return UNMUTED
    return IGNORE


def _parse_volume(data: Sequence[int]) -> Event:
    if data[1] == VOLUME_UP_CODE:
        return VOLUME_UP
    if data[1] == VOLUME_DOWN_CODE:
        return VOLUME_DOWN
    return IGNORE


def _parse_battery(data: Sequence[int]) -> Event:
    state = data[3]
    value = data[4]
    if state in BATTERY_STATES_CHARGING:
        if value >= CHARGING_VALUE_MIN:
            return BATTERY_CHARGING
        return battery_level(100)
    return battery_level(battery_percent(state, value))


_PARSERS = {
    REPORT_LEN_STATUS: _parse_status,
    REPORT_LEN_VOLUME: _parse_volume,
    REPORT_LEN_BATTERY: _parse_battery,
}


def parse_report(data: Sequence[int], size: Optional[int] = None) -> Event:
    """Decode one input report into an Event.

    Args:
        data: Report bytes, as returned by hid.device.read().
        size: Number of valid bytes in data. Defaults to len(data).

    Returns:
        The decoded Event. Unknown lengths and byte patterns give IGNORE;
        this function never raises on bad input.
    """
    if size is None:
        size = len(data)
    parser = _PARSERS.get(size)
    if parser is None or size > len(data):
        return IGNORE
    return parser([b & 0xFF for b in data[:size]])
