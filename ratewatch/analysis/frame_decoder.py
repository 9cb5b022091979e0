# ratewatch/analysis/frame_decoder.py
"""
Ethernet frame decoding.

Only the link-layer header is parsed: destination, source and EtherType.
Malformed input never raises; decode() returns None and the caller skips it.
"""
import struct
from dataclasses import dataclass
from typing import Optional

ETH_HEADER_LEN = 14
ETH_ADDR_LEN = 6


def format_mac(addr: bytes) -> str:
    """Render a 6-byte link address as lowercase colon-separated hex."""
    return ":".join(f"{b:02x}" for b in addr)


@dataclass(frozen=True)
class Frame:
    """Immutable view of one captured Ethernet frame."""
    source: str
    destination: str
    ethertype: int
    payload: bytes


def decode(raw) -> Optional[Frame]:
    """Decode a raw buffer into a Frame, or None when it is not a parseable Ethernet frame."""
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        return None
    data = bytes(raw)
    if len(data) < ETH_HEADER_LEN:
        return None
    ethertype = struct.unpack_from("!H", data, 12)[0]
    return Frame(
        source=format_mac(data[ETH_ADDR_LEN:2 * ETH_ADDR_LEN]),
        destination=format_mac(data[0:ETH_ADDR_LEN]),
        ethertype=ethertype,
        payload=data[ETH_HEADER_LEN:],
    )
