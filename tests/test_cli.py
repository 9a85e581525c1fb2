from __future__ import annotations

import json

from hyperx_cloud_flight.cli import format_event
from hyperx_cloud_flight.protocol import BATTERY_CHARGING, MUTED, battery_level


def test_format_event_text():
    assert format_event(MUTED) == "muted"
    assert format_event(battery_level(85)) == "battery_level: 85%"


def test_format_event_json():
    assert json.loads(format_event(BATTERY_CHARGING, as_json=True)) == {"event": "battery_charging"}
    assert json.loads(format_event(battery_level(40), as_json=True)) == {
        "event": "battery_level",
        "level": 40,
    }
