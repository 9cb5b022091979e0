# ratewatch/errors.py
# Exception hierarchy. Startup errors are fatal; receive errors may be retried by the capture loop.
"""
Custom exceptions for ratewatch.
"""
import errno
from typing import Optional


class RateWatchError(Exception):
    """Base exception for all ratewatch errors."""
    pass


class ConfigError(RateWatchError):
    """Raised when the configuration file or a configured value is invalid."""
    pass


class NoInterfaceFound(RateWatchError):
    """Raised when no network interface satisfies the selection criteria."""
    pass


class UnsupportedChannelType(RateWatchError):
    """Raised when the opened capture socket is not an Ethernet link-layer channel."""
    pass


class CaptureOpenError(RateWatchError):
    """Raised when the capture socket cannot be opened (permission denied, device busy...)."""

    def __init__(self, interface: str, cause: Optional[BaseException] = None):
        self.interface = interface
        self.cause = cause
        self.errno = getattr(cause, "errno", None)
        super().__init__(f"Error opening channel on {interface}: {cause}")


class ReceiveError(RateWatchError):
    """Raised when reading the next frame fails."""

    transient = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        self.errno = getattr(cause, "errno", None)
        super().__init__(message)


class DeviceRemovedError(ReceiveError):
    """The capture device went away; never retried."""

    transient = False


# errno values that mean the device is gone rather than hiccuping
DEVICE_GONE_ERRNOS = frozenset({errno.ENODEV, errno.ENXIO, errno.ENETDOWN, errno.EBADF})


def classify_receive_error(exc: BaseException) -> ReceiveError:
    """Wrap a low-level receive failure into ReceiveError or DeviceRemovedError."""
    code = getattr(exc, "errno", None)
    if code in DEVICE_GONE_ERRNOS:
        return DeviceRemovedError(f"Capture device unavailable: {exc}", cause=exc)
    return ReceiveError(f"An error occurred while reading: {exc}", cause=exc)
