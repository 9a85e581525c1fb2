"""Background supervisor: keeps a session connected to the headset."""

import logging
import threading
from typing import Callable, Optional

from hyperx_cloud_flight.errors import (
    CloudFlightError,
    DeviceDisconnectedError,
    WriteFailureError,
)
from hyperx_cloud_flight.protocol import VENDOR_ID_STR
from hyperx_cloud_flight.scheduler import SHUTDOWN_TIMEOUT_SECONDS
from hyperx_cloud_flight.session import CloudFlightSession

log = logging.getLogger(__name__)


class HeadsetMonitor:
    """Runs scan -> read on a worker thread, scanning again after a disconnect.

    Between scans the worker waits ``rescan_delay`` seconds, or less when a
    pyudev hotplug event for the vendor arrives first.

    Args:
        session: Session to drive. Its init() is called by the worker.
        rescan_delay: Seconds to wait when no headset is found.
        on_connection: Called with True when a headset is opened and with
            False when it goes away.
        on_error: Called with the exception that stopped the worker.
        hotplug: Watch udev for USB events to shorten the wait.
    """

    def __init__(
        self,
        session: CloudFlightSession,
        rescan_delay: float = 5.0,
        on_connection: Optional[Callable[[bool], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        hotplug: bool = True,
    ):
        self._session = session
        self._rescan_delay = rescan_delay
        self._on_connection = on_connection
        self._on_error = on_error
        self._hotplug = hotplug

        self._cancel = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._watching = False
        self.connected = False

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            return
        self._cancel.clear()
        if self._hotplug:
            self.watch_hotplug()
        self._thread = threading.Thread(target=self.run, name="headset-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> bool:
        """Cancel the read loop and wait for the worker to finish."""
        self._watching = False
        self._cancel.set()
        self._wake.set()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def rescan(self) -> None:
        """Cut the current wait short and scan now."""
        self._wake.set()

    def run(self) -> None:
        """Worker body; also usable in the foreground (the CLI does this)."""
        try:
            self._session.init()
            while not self._cancel.is_set():
                device = self._session.scan()
                if device is None:
                    log.info("No headset found, retrying in %ss", self._rescan_delay)
                    self._wait()
                    continue

                self._set_connected(True)
                try:
                    self._session.read(device, self._cancel)
                except DeviceDisconnectedError:
                    log.info("Headset disconnected")
                except WriteFailureError as e:
                    log.warning("Session ended after failed write: %s", e)
                finally:
                    self._set_connected(False)

                if not self._cancel.is_set():
                    self._wait()
        except CloudFlightError as e:
            log.error("Headset monitor stopped: %s", e)
            if self._on_error:
                self._on_error(e)
            else:
                raise
        finally:
            self._session.close()

    def _wait(self) -> None:
        self._wake.clear()
        if self._cancel.is_set():
            return
        self._wake.wait(self._rescan_delay)

    def _set_connected(self, connected: bool) -> None:
        self.connected = connected
        if self._on_connection:
            self._on_connection(connected)

    def watch_hotplug(self) -> None:
        """Start a pyudev watcher thread that triggers a rescan on USB add events."""
        try:
            import pyudev
        except ImportError:
            log.debug("pyudev not available, hotplug detection disabled")
            return

        try:
            context = pyudev.Context()
            monitor = pyudev.Monitor.from_netlink(context)
            monitor.filter_by(subsystem="usb")
        except (ImportError, OSError):
            log.debug("udev unavailable, hotplug detection disabled", exc_info=True)
            return
        self._watching = True

        def _watch():
            for device in iter(monitor.poll, None):
                if not self._watching:
                    break
                if device.action == "add" and device.get("ID_VENDOR_ID", "") == VENDOR_ID_STR:
                    log.debug("Hotplug event for %s", device.sys_path)
                    self._wake.set()

        threading.Thread(target=_watch, name="udev-monitor", daemon=True).start()

