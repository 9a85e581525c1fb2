"""HID session for the HyperX Cloud Flight: scan, read loop, battery polling."""

import logging
import threading
from enum import Enum, auto
from typing import Callable, Optional

from hyperx_cloud_flight.device import CloudFlightDevice, HidHost, find_device
from hyperx_cloud_flight.errors import (
    DeviceDisconnectedError,
    InvalidStateError,
    WriteFailureError,
)
from hyperx_cloud_flight.protocol import (
    REPORT_SIZE,
    Event,
    EventType,
    POWER_OFF,
    parse_report,
)
from hyperx_cloud_flight.scheduler import (
    BatteryPollScheduler,
    POLL_INTERVAL_SECONDS,
    SHUTDOWN_TIMEOUT_SECONDS,
)

log = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT_MS = 500


class SessionState(Enum):
    """Read loop lifecycle."""
    IDLE = auto()
    RUNNING = auto()
    DISCONNECTED = auto()
    CANCELLED = auto()


class CloudFlightSession:
    """Owns the headset connection and turns its reports into events.

    Typical use::

        session = CloudFlightSession(print)
        session.init()
        device = session.scan()
        if device:
            session.read(device, cancel_event)

    ``read`` blocks until the headset disconnects (DeviceDisconnectedError),
    the cancel event is set, or a battery query write fails
    (WriteFailureError). After a disconnect, call ``scan`` again.

    Args:
        on_event: Called once per decoded report, from the read loop thread.
        host: HID host layer. A new one is created if omitted; a host that
            is already initialized belongs to another session and is
            rejected.
        poll_interval: Seconds between periodic battery queries.
        shutdown_timeout: Seconds to wait for the poll timer to stop.
        refresh_on_mute: Query the battery whenever the mic gets muted.
        stop_on_write_error: Make a failed periodic battery query end the
            session instead of retrying on the next tick.
        read_timeout_ms: Read timeout used to check the cancel event and
            a failed periodic query. 0 blocks until data arrives and is only
            accepted when stop_on_write_error is off, since a blocked read
            would not notice the failure until the next report.
        poll_initial_delay: Seconds before the first periodic query.
    """

    def __init__(
        self,
        on_event: Callable[[Event], None],
        host: Optional[HidHost] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT_SECONDS,
        refresh_on_mute: bool = True,
        stop_on_write_error: bool = True,
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
        poll_initial_delay: float = 0.0,
    ):
        if host is not None and host.is_started:
            raise InvalidStateError("hid services already in use by another session")
        if read_timeout_ms <= 0 and stop_on_write_error:
            raise ValueError("read_timeout_ms must be positive when stop_on_write_error is set")
        self._on_event = on_event
        self._host = host or HidHost()
        self._poll_interval = poll_interval
        self._shutdown_timeout = shutdown_timeout
        self._refresh_on_mute = refresh_on_mute
        self._stop_on_write_error = stop_on_write_error
        self._read_timeout_ms = read_timeout_ms
        self._poll_initial_delay = poll_initial_delay

        self._device: Optional[CloudFlightDevice] = None
        self._scheduler: Optional[BatteryPollScheduler] = None
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def device(self) -> Optional[CloudFlightDevice]:
        return self._device

    def init(self) -> None:
        """Initialize the host HID layer. Raises InvalidStateError if repeated."""
        log.info("initializing hid services")
        self._host.start()

    def scan(self) -> Optional[CloudFlightDevice]:
        """Find and open the headset.

        Returns:
            The open device, or None if no headset is attached.
        """
        log.info("scanning for devices")
        if not self._host.is_started:
            raise InvalidStateError("hid services not initialized")

        info = find_device(self._host.enumerate())
        if info is None:
            return None

        self._stop_scheduler()
        if self._device is not None:
            self._device.close()
        self._device = self._host.open(info)
        self._state = SessionState.IDLE
        log.info("found headset %04x at %r", info["product_id"], info.get("path"))
        return self._device

    def read(self, device: CloudFlightDevice, cancel: Optional[threading.Event] = None) -> None:
        """Run the read loop until disconnect, cancellation, or a fatal poll error.

        The battery poll timer runs for exactly as long as this loop, and
        the device is closed when the loop ends. If the timer does not stop
        within shutdown_timeout, InvalidStateError is raised and the device
        stays open until scan() or close() can release it.
        """
        log.info("reading device data")
        if not device.is_open:
            raise InvalidStateError("device not open")
        if cancel is None:
            cancel = threading.Event()

        self._start_scheduler(device)
        if self._device is not None and self._device is not device:
            self._device.close()
        self._device = device
        self._state = SessionState.RUNNING
        try:
            while not cancel.is_set():
                self._check_scheduler()

                data = device.read(REPORT_SIZE, self._read_timeout_ms)
                if data is None:
                    self._state = SessionState.DISCONNECTED
                    self._on_event(POWER_OFF)
                    raise DeviceDisconnectedError("headset disconnected")
                if not data:
                    continue  # read timed out

                event = parse_report(data)

                if self._refresh_on_mute and event.kind is EventType.MUTED:
                    self.trigger_battery_level(device)
                if event.kind is EventType.POWER_ON:
                    self.trigger_battery_level(device)

                log.debug("read event: %s", event)
                self._on_event(event)

            self._state = SessionState.CANCELLED
            log.info("read loop cancelled")
        finally:
            if self._state is SessionState.RUNNING:
                self._state = SessionState.IDLE
            # The poll timer may still be writing; the handle is kept if it is.
            self._stop_scheduler()
            device.close()
            if self._device is device:
                self._device = None

    def trigger_battery_level(self, device: CloudFlightDevice) -> None:
        """Ask the headset for its battery state; the answer arrives as a report."""
        written = device.request_battery()
        if written < 0:
            raise WriteFailureError("could not write battery query")
        log.debug("battery query sent")

    def stop(self) -> bool:
        """Stop the battery poll timer. Returns False if it did not stop in time."""
        if self._scheduler is None:
            return True
        return self._scheduler.stop(self._shutdown_timeout)

    def close(self) -> None:
        """Stop polling, close the device and release the host layer.

        If the poll timer is still inside a write, closing the device waits
        for that write to return.
        """
        if not self.stop():
            log.warning("battery poll scheduler did not stop in %.1fs", self._shutdown_timeout)
        if self._device is not None:
            self._device.close()
            self._device = None
        self._host.stop()

    def _stop_scheduler(self) -> None:
        if not self.stop():
            raise InvalidStateError("could not shutdown scheduler")

    def _start_scheduler(self, device: CloudFlightDevice) -> None:
        self._stop_scheduler()
        self._scheduler = BatteryPollScheduler(
            lambda: self.trigger_battery_level(device),
            interval=self._poll_interval,
            stop_on_error=self._stop_on_write_error,
        )
        self._scheduler.start(self._poll_initial_delay)

    def _check_scheduler(self) -> None:
        error = self._scheduler.error if self._scheduler else None
        if error is not None:
            raise error
