# ratewatch/capture/backends/scapy_backend.py
import time
from typing import Callable, Optional, Tuple

from loguru import logger
from scapy.all import conf, Ether
from scapy.data import MTU
from scapy.error import Scapy_Exception

from ratewatch.capture.interfaces import Interface
from ratewatch.errors import (CaptureOpenError, DeviceRemovedError, ReceiveError,
                              UnsupportedChannelType, classify_receive_error)


class FrameSender:
    """Transmit half of the channel. Not used by the capture loop."""

    def __init__(self, sock):
        self._sock = sock

    def send(self, raw: bytes) -> int:
        return self._sock.send(raw)


class FrameReceiver:
    """
    Receive half of the channel: one raw frame per call.

    Frames the host itself transmits are not delivered: scapy's Linux L2Socket
    reports PACKET_OUTGOING frames as (None, None, None) and they are skipped here,
    so only inbound traffic is counted.
    """

    def __init__(self, sock):
        self._sock = sock

    def receive_next(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Block until a frame arrives and return its bytes.

        With a timeout, returns None when nothing arrived in time so the caller can
        check for cancellation. Raises ReceiveError (or DeviceRemovedError) on failure.
        """
        if getattr(self._sock, "closed", False):
            raise DeviceRemovedError("Capture socket is closed")
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    if not self._sock.select([self._sock], remaining):
                        return None
                _cls, data, _ts = self._sock.recv_raw(MTU)
            except OSError as e:
                raise classify_receive_error(e) from e
            except Scapy_Exception as e:
                raise ReceiveError(f"An error occurred while reading: {e}", cause=e) from e
            if data is not None:
                return data


class ScapyChannel:
    """
    Ethernet capture channel on one interface, backed by scapy's conf.L2socket.

    Use as a context manager; the socket is closed on every exit path:

        with ScapyChannel(iface) as (tx, rx):
            raw = rx.receive_next()
    """

    def __init__(self, interface: Interface, promisc: bool = True,
                 socket_factory: Optional[Callable] = None):
        self.interface = interface
        self.promisc = promisc
        self._socket_factory = socket_factory
        self._sock = None
        self.sender: Optional[FrameSender] = None
        self.receiver: Optional[FrameReceiver] = None

    def _check_link_layer(self, sock):
        ll = getattr(sock, "LL", None)
        if getattr(sock, "lvl", 2) != 2 or (ll is not None and not issubclass(ll, Ether)):
            name = getattr(ll, "__name__", type(sock).__name__)
            raise UnsupportedChannelType(f"Unsupported channel type on {self.interface.name}: {name}")

    def open(self) -> Tuple[FrameSender, FrameReceiver]:
        factory = self._socket_factory or conf.L2socket
        logger.debug("Opening {} on iface={} promisc={}", getattr(factory, "__name__", factory),
                     self.interface.name, self.promisc)
        try:
            sock = factory(iface=self.interface.name, promisc=self.promisc)
        except (OSError, Scapy_Exception) as e:
            raise CaptureOpenError(self.interface.name, e) from e
        try:
            self._check_link_layer(sock)
        except UnsupportedChannelType:
            sock.close()
            raise
        self._sock = sock
        self.sender = FrameSender(sock)
        self.receiver = FrameReceiver(sock)
        return self.sender, self.receiver

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def close(self):
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        try:
            sock.close()
        finally:
            logger.debug("Closed capture socket on {}", self.interface.name)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def open_channel(interface: Interface, promisc: bool = True,
                 socket_factory: Optional[Callable] = None) -> ScapyChannel:
    """Create a channel for `interface`; the socket is opened on `with` entry."""
    return ScapyChannel(interface, promisc=promisc, socket_factory=socket_factory)
