# ratewatch/capture/interfaces.py
# Reusable module to enumerate network interfaces and select the one to capture on.
import ipaddress
import socket
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

import psutil
from loguru import logger

from ratewatch.errors import NoInterfaceFound

_IP_FAMILIES = (socket.AF_INET, socket.AF_INET6)


@dataclass(frozen=True)
class Interface:
    name: str
    is_up: bool
    is_loopback: bool
    ips: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_ip(self) -> bool:
        return bool(self.ips)

    def describe(self) -> str:
        status = "[ON]" if self.is_up else "[OFF]"
        kind = " loopback" if self.is_loopback else ""
        addrs = f" (IP: {', '.join(self.ips)})" if self.ips else ""
        return f"{status} {self.name}{kind}{addrs}"


@dataclass(frozen=True)
class ByName:
    """Exact name match; the interface must be up and not loopback."""
    name: str

    def matches(self, iface: Interface) -> bool:
        return iface.name == self.name and iface.is_up and not iface.is_loopback

    def __str__(self):
        return f"name={self.name!r}"


@dataclass(frozen=True)
class FirstSuitable:
    """First interface in enumeration order with a network address that is not loopback."""

    def matches(self, iface: Interface) -> bool:
        return iface.has_ip and not iface.is_loopback

    def __str__(self):
        return "first active non-loopback"


Criteria = Union[ByName, FirstSuitable]


def criteria_for(name: Optional[str]) -> Criteria:
    return ByName(name) if name else FirstSuitable()


def _is_loopback(name: str, stats, ips: List[str]) -> bool:
    flags = getattr(stats, "flags", "") or ""
    if "loopback" in flags.split(","):
        return True
    if ips:
        try:
            return all(ipaddress.ip_address(ip.split("%")[0]).is_loopback for ip in ips)
        except ValueError:
            return False
    return name == "lo"


def list_interfaces() -> List[Interface]:
    """Read the OS interface table, in enumeration order."""
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()
    interfaces = []
    for name, entries in addrs.items():
        ips = [a.address for a in entries if a.family in _IP_FAMILIES]
        st = stats.get(name)
        interfaces.append(Interface(
            name=name,
            is_up=bool(st and st.isup),
            is_loopback=_is_loopback(name, st, ips),
            ips=tuple(ips),
        ))
    # interfaces with stats but no addresses at all
    for name, st in stats.items():
        if name not in addrs:
            interfaces.append(Interface(name=name, is_up=bool(st.isup), is_loopback=_is_loopback(name, st, [])))
    return interfaces


def select_interface(interfaces: Iterable[Interface], criteria: Criteria) -> Interface:
    """Return the first interface satisfying `criteria`, or raise NoInterfaceFound."""
    for iface in interfaces:
        if criteria.matches(iface):
            logger.debug("Selected interface {} ({})", iface.name, criteria)
            return iface
    raise NoInterfaceFound(f"No suitable network interface found ({criteria})")
