# ratewatch/capture/manager.py
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from ratewatch.analysis.frame_decoder import Frame, decode
from ratewatch.analysis.rate_limiter import RateLimiter, Verdict
from ratewatch.capture.backends.scapy_backend import open_channel
from ratewatch.capture.interfaces import Interface
from ratewatch.errors import ReceiveError


class LoopState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATED = "terminated"


class StopReason(Enum):
    CANCELLED = "cancelled"
    RECEIVE_ERROR = "receive_error"


@dataclass
class LoopResult:
    reason: Optional[StopReason] = None
    frames_received: int = 0
    frames_skipped: int = 0
    frames_exceeded: int = 0
    error: Optional[ReceiveError] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.reason is StopReason.CANCELLED else 1


class CaptureManager:
    """
    Drives the receive -> decode -> record -> log cycle on one interface.

    The loop runs until stop() is called (from any thread) or a receive error
    becomes fatal: either the device went away or transient errors repeated
    more than max_receive_retries times in a row. The capture channel is closed
    on every exit path.
    """

    def __init__(self, interface: Interface, limiter: RateLimiter, channel=None,
                 decoder: Callable[[bytes], Optional[Frame]] = decode,
                 stop_event: Optional[threading.Event] = None, poll_interval: float = 0.5,
                 max_receive_retries: int = 3, retry_delay: float = 0.1,
                 violation_sink=None, promisc: bool = True):
        self.interface = interface
        self.limiter = limiter
        self.channel = channel
        self.decoder = decoder
        self.poll_interval = poll_interval
        self.max_receive_retries = max_receive_retries
        self.retry_delay = retry_delay
        self.violation_sink = violation_sink
        self.promisc = promisc
        self._stop = stop_event or threading.Event()
        self._state = LoopState.IDLE

    @property
    def state(self) -> LoopState:
        return self._state

    def stop(self):
        """Request a clean shutdown; the loop exits at its next poll."""
        self._stop.set()

    def run(self) -> LoopResult:
        """
        Open the channel and process frames until cancelled or a fatal receive error.

        CaptureOpenError / UnsupportedChannelType propagate to the caller before the
        loop starts.
        """
        channel = self.channel or open_channel(self.interface, promisc=self.promisc)
        result = LoopResult()
        with channel as (_tx, rx):
            self._state = LoopState.RUNNING
            logger.debug("Capture loop running on {}", self.interface.name)
            try:
                self._loop(rx, result)
            finally:
                self._state = LoopState.TERMINATED
                self._log_summary(result)
        return result

    def _loop(self, rx, result: LoopResult):
        failures = 0
        while not self._stop.is_set():
            try:
                raw = rx.receive_next(self.poll_interval)
            except ReceiveError as e:
                failures += 1
                if not e.transient or failures > self.max_receive_retries:
                    logger.error("{}", e)
                    result.reason = StopReason.RECEIVE_ERROR
                    result.error = e
                    return
                logger.warning("Transient receive error ({}/{}): {}", failures, self.max_receive_retries, e)
                self._stop.wait(self.retry_delay)
                continue
            failures = 0
            if raw is None:
                continue
            result.frames_received += 1
            frame = self.decoder(raw)
            if frame is None:
                result.frames_skipped += 1
                continue
            verdict = self.limiter.record(frame.source, self.limiter.now())
            self._observe(verdict, result)
        result.reason = StopReason.CANCELLED

    def _observe(self, verdict: Verdict, result: LoopResult):
        if not verdict.exceeded:
            logger.info("Packet from {}: total {}", verdict.source, verdict.count)
            return
        result.frames_exceeded += 1
        logger.warning("Rate limiting exceeded for {}: {} packets", verdict.source, verdict.count)
        if self.violation_sink is not None:
            self.violation_sink.write_violation(verdict, self.interface.name, self.limiter.threshold)

    def _log_summary(self, result: LoopResult):
        reason = result.reason.value if result.reason else "aborted"
        sources = len(self.limiter.snapshot().counts)
        logger.info("Capture stopped ({}): received={} skipped={} exceeded={} sources_in_window={}",
                    reason, result.frames_received, result.frames_skipped, result.frames_exceeded, sources)
