"""HyperX Cloud Flight HID device communication."""

import logging
import threading
from typing import Optional, List, Dict, Any

from hyperx_cloud_flight.errors import InvalidStateError, TransportError
from hyperx_cloud_flight.protocol import (
    VENDOR_ID,
    PRODUCT_IDS,
    REPORT_SIZE,
    build_battery_query_packet,
)

log = logging.getLogger(__name__)


def _load_hid_backend():
    """Import the hidapi binding lazily so a missing library is a TransportError."""
    try:
        import hid
    except ImportError as exc:
        raise TransportError("hidapi not installed: pip install hidapi") from exc
    return hid


def is_cloud_flight(info: Dict[str, Any]) -> bool:
    """Return True if an enumerated HID interface is a Cloud Flight headset."""
    return info.get("vendor_id") == VENDOR_ID and info.get("product_id") in PRODUCT_IDS


def find_device(devices: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the first Cloud Flight interface from an enumeration result.

    Order is whatever the host transport reported.
    """
    for info in devices:
        if is_cloud_flight(info):
            return info
    return None


def describe_device(info: Dict[str, Any]) -> Dict[str, Any]:
    """Format one enumerated interface for display."""
    path = info.get("path", b"")
    return {
        "product_id": f"{info.get('product_id', 0):04X}",
        "path": path.decode() if isinstance(path, bytes) else path,
        "interface": info.get("interface_number", -1),
        "usage_page": f"0x{info.get('usage_page', 0):04X}",
        "manufacturer": info.get("manufacturer_string"),
        "product": info.get("product_string"),
    }


class CloudFlightDevice:
    """Open HID connection to the headset.

    Reads and writes report failures through return values, in the way
    hidapi's C interface does: read() returns None once the device is gone
    and write() returns -1 when the write was rejected.

    Writes may come from the battery poll thread, so write() and close()
    share a lock: close() waits for a write in progress to finish.
    """

    def __init__(self, dev, info: Dict[str, Any]):
        self._dev = dev
        self._info = info
        self._write_lock = threading.Lock()

    @property
    def info(self) -> Dict[str, Any]:
        return self._info

    @property
    def product_id(self) -> Optional[int]:
        return self._info.get("product_id")

    @property
    def is_open(self) -> bool:
        """Check if device connection is open."""
        return self._dev is not None

    def read(self, size: int = REPORT_SIZE, timeout_ms: int = 0) -> Optional[bytes]:
        """Read one input report.

        Args:
            size: Maximum number of bytes to read.
            timeout_ms: Give up after this long; 0 blocks until data arrives.

        Returns:
            The report bytes, b'' if the timeout expired, or None if the
            device can no longer be read (unplugged, closed).
        """
        if self._dev is None:
            return None
        try:
            data = self._dev.read(size, timeout_ms)
        except (OSError, ValueError) as e:
            log.debug("HID read failed: %s", e)
            return None
        return bytes(data) if data else b""

    def write(self, packet: bytes) -> int:
        """Write an output report; the first byte is the report id.

        Returns:
            Number of bytes written, or -1 on error.
        """
        with self._write_lock:
            if self._dev is None:
                return -1
            try:
                return self._dev.write(packet)
            except (OSError, ValueError) as e:
                log.debug("HID write failed: %s", e)
                return -1

    def request_battery(self) -> int:
        """Send the battery query. The reply comes back through read()."""
        return self.write(build_battery_query_packet())

    def close(self) -> None:
        """Close the device connection."""
        with self._write_lock:
            if self._dev is None:
                return
            dev, self._dev = self._dev, None
        try:
            dev.close()
        except (OSError, ValueError):
            log.debug("Error while closing HID device", exc_info=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class HidHost:
    """Host HID layer: initialized once, then used to enumerate and open.

    Args:
        backend: Module-like object providing enumerate() and device().
            Defaults to the hidapi ``hid`` module, loaded on start().
    """

    def __init__(self, backend=None):
        self._backend = backend
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Initialize the host layer. May only be called once."""
        if self._started:
            raise InvalidStateError("hid services already initialized")
        if self._backend is None:
            self._backend = _load_hid_backend()
        self._started = True

    def stop(self) -> None:
        self._started = False

    def enumerate(self) -> List[Dict[str, Any]]:
        """Return all attached HID interfaces."""
        self._require_started()
        try:
            return list(self._backend.enumerate())
        except (OSError, ValueError) as e:
            raise TransportError(f"HID enumeration failed: {e}") from e

    def list_devices(self) -> List[Dict[str, Any]]:
        """Return a list of dicts describing all HyperX HID interfaces found."""
        return [describe_device(info) for info in self.enumerate()
                if info.get("vendor_id") == VENDOR_ID]

    def open(self, info: Dict[str, Any]) -> CloudFlightDevice:
        """Open an enumerated interface in blocking mode."""
        self._require_started()
        try:
            dev = self._backend.device()
            dev.open_path(info["path"])
            dev.set_nonblocking(False)
        except (OSError, ValueError) as e:
            raise TransportError(f"Could not open HID device {info.get('path')!r}: {e}") from e
        return CloudFlightDevice(dev, info)

    def _require_started(self) -> None:
        if not self._started:
            raise InvalidStateError("hid services not initialized")
