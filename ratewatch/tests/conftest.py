# ratewatch/tests/conftest.py
import sys

import pytest
from loguru import logger

from ratewatch.capture.interfaces import Interface


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float):
        self.t += seconds


class ScriptedReceiver:
    """
    Plays back a script of receive results: bytes are returned, exceptions raised,
    callables run (then count as a poll timeout), None is a poll timeout.
    When the script runs out, on_exhausted() is called and None returned.
    """

    def __init__(self, script, on_exhausted=None):
        self.script = list(script)
        self.on_exhausted = on_exhausted
        self.calls = 0

    def receive_next(self, timeout=None):
        self.calls += 1
        if not self.script:
            if self.on_exhausted:
                self.on_exhausted()
            return None
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item()
            return None
        return item


class FakeChannel:
    def __init__(self, receiver):
        self.receiver = receiver
        self.opened = False
        self.closed = False

    def __enter__(self):
        self.opened = True
        return object(), self.receiver

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False


def eth_frame(src: str, dst: str = "ff:ff:ff:ff:ff:ff", ethertype: int = 0x0800, payload: bytes = b"\x00" * 46) -> bytes:
    return bytes.fromhex(dst.replace(":", "")) + bytes.fromhex(src.replace(":", "")) + ethertype.to_bytes(2, "big") + payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def eth0():
    return Interface(name="eth0", is_up=True, is_loopback=False, ips=("192.168.1.10",))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("IFACE", "RATEWATCH_WINDOW", "RATEWATCH_THRESHOLD", "RATEWATCH_LOG_LEVEL",
                "RATEWATCH_MAX_RETRIES", "INFLUX_URL", "INFLUX_TOKEN", "INFLUX_ORG", "INFLUX_BUCKET"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)
