"""Exceptions raised by the headset monitor."""


class CloudFlightError(Exception):
    """Base exception for this package."""


class InvalidStateError(CloudFlightError):
    """Raised when an operation is attempted in the wrong lifecycle state."""


class TransportError(CloudFlightError):
    """Raised when the host HID layer cannot be initialized or used."""


class DeviceDisconnectedError(CloudFlightError):
    """Raised when a read from the headset fails; scan again to recover."""


class WriteFailureError(CloudFlightError):
    """Raised when a write to the headset is rejected."""
