from __future__ import annotations

import threading
import time

import pytest

CLOUD_FLIGHT = {
    "vendor_id": 0x0951,
    "product_id": 0x16C4,
    "path": b"/dev/hidraw3",
    "interface_number": 0,
    "usage_page": 0xFF00,
    "manufacturer_string": "HP",
    "product_string": "HyperX Cloud Flight Wireless",
}


class FakeHidDevice:
    """Stand-in for hid.device().

    ``read_queue`` items are returned in order: a list is a report, None
    makes read() raise OSError like hidapi does on unplug. Once the queue is
    empty, reads wait out their timeout and return []; after
    ``max_idle_reads`` of those the device reports itself unplugged so a
    broken test ends instead of hanging.
    """

    def __init__(self, read_queue=None, write_result=None, max_idle_reads=500):
        self.path = None
        self.nonblocking = None
        self.closed = False
        self.read_queue = list(read_queue or [])
        self.reads = 0
        self.writes = []
        self.write_result = write_result
        self.write_started = threading.Event()
        self.write_release = None
        self.max_idle_reads = max_idle_reads
        self._idle_reads = 0

    def open_path(self, path):
        self.path = path

    def set_nonblocking(self, value):
        self.nonblocking = value

    def read(self, size, timeout_ms=0):
        if self.closed:
            raise ValueError("not open")
        self.reads += 1
        if self.read_queue:
            item = self.read_queue.pop(0)
            if item is None:
                raise OSError("read error")
            return list(item)[:size]
        self._idle_reads += 1
        if self._idle_reads > self.max_idle_reads:
            raise OSError("read error")
        time.sleep(min(timeout_ms, 10) / 1000.0)
        return []

    def write(self, data):
        self.write_started.set()
        if self.write_release is not None:
            self.write_release.wait(5)
        self.writes.append(bytes(data))
        if self.write_result is not None:
            return self.write_result
        return len(data)

    def close(self):
        self.closed = True


class FakeHidBackend:
    """Stand-in for the hid module: enumerate() and device()."""

    def __init__(self, devices=None, hid_devices=None):
        self.devices = [CLOUD_FLIGHT] if devices is None else devices
        self.hid_devices = list(hid_devices or [])
        self.created = []
        self.enumerations = 0
        self.enumerate_error = None
        self.open_error = None

    def enumerate(self, vendor_id=0, product_id=0):
        self.enumerations += 1
        if self.enumerate_error:
            raise self.enumerate_error
        return list(self.devices)

    def device(self):
        if self.open_error:
            raise self.open_error
        dev = self.hid_devices.pop(0) if self.hid_devices else FakeHidDevice()
        self.created.append(dev)
        return dev


class EventRecorder:
    def __init__(self):
        self.events = []
        self.received = threading.Event()

    def __call__(self, event):
        self.events.append(event)
        self.received.set()


@pytest.fixture
def recorder():
    return EventRecorder()


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
