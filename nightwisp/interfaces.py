"""Discovery and selection of local network interfaces."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass, field
from typing import Iterable

import psutil

IPInterface = ipaddress.IPv4Interface | ipaddress.IPv6Interface


class InterfaceError(LookupError):
    """Raised when no usable network interface can be chosen."""


@dataclass(frozen=True)
class NetworkInterface:
    """A local network interface and its addresses."""

    name: str
    index: int = 0
    mac: str | None = None
    ips: tuple[IPInterface, ...] = field(default_factory=tuple)
    is_up: bool = False
    is_loopback: bool = False

    @property
    def ipv4_addresses(self) -> list[ipaddress.IPv4Address]:
        return [ip.ip for ip in self.ips if ip.version == 4]

    @property
    def flags(self) -> list[str]:
        names = []
        if self.is_up:
            names.append("UP")
        if self.is_loopback:
            names.append("LOOPBACK")
        return names


@dataclass(frozen=True)
class SelectedInterface:
    """An interface chosen for scanning together with its IPv4 source address."""

    interface: NetworkInterface
    source_ip: ipaddress.IPv4Address


def _prefix_length(netmask: str | None, max_length: int) -> int:
    if not netmask:
        return max_length
    try:
        mask = int(ipaddress.ip_address(netmask.split("%", 1)[0]))
    except ValueError:
        return max_length
    return bin(mask).count("1")


def _to_ip_interface(address: str, netmask: str | None) -> IPInterface | None:
    address = address.split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return None
    prefix = _prefix_length(netmask, ip.max_prefixlen)
    return ipaddress.ip_interface(f"{ip}/{prefix}")


def _interface_index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except (OSError, ValueError):
        return 0


def available_interfaces() -> list[NetworkInterface]:
    """Return all interfaces known to the operating system, ordered by index."""
    addresses = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    result = []
    for name, entries in addresses.items():
        mac = None
        ips: list[IPInterface] = []
        for entry in entries:
            if entry.family == psutil.AF_LINK:
                mac = entry.address
            elif entry.family in (socket.AF_INET, socket.AF_INET6):
                ip = _to_ip_interface(entry.address, entry.netmask)
                if ip is not None:
                    ips.append(ip)
        stat = stats.get(name)
        is_up = bool(stat.isup) if stat is not None else False
        is_loopback = bool(ips) and all(ip.is_loopback for ip in ips)
        result.append(
            NetworkInterface(
                name=name,
                index=_interface_index(name),
                mac=mac,
                ips=tuple(ips),
                is_up=is_up,
                is_loopback=is_loopback,
            )
        )

    result.sort(key=lambda iface: (iface.index, iface.name))
    return result


def list_available_interfaces() -> None:
    """Print a description of every available interface."""
    print("Available network interfaces:")
    for iface in available_interfaces():
        print(f"  Name: {iface.name}")
        print(f"    Index: {iface.index}")
        print(f"    Flags: {iface.flags}")
        print(f"    MAC: {iface.mac}")
        print("    IPs:")
        for ip in iface.ips:
            print(f"      - {ip}")
        print("-------------------------------")


def select_interface(
    name: str | None = None,
    interfaces: Iterable[NetworkInterface] | None = None,
) -> SelectedInterface:
    """Pick the named interface, or the best default one, and its IPv4 address."""
    candidates = list(available_interfaces() if interfaces is None else interfaces)

    if name is not None:
        chosen = next((iface for iface in candidates if iface.name == name), None)
        if chosen is None:
            raise InterfaceError(f"Interface '{name}' not found.")
    else:
        usable = [
            iface
            for iface in candidates
            if iface.is_up and not iface.is_loopback and iface.ipv4_addresses
        ]
        if not usable:
            raise InterfaceError(
                "No suitable default interface found. Please specify one."
            )
        chosen = min(usable, key=lambda iface: iface.index)

    ipv4 = chosen.ipv4_addresses
    if not ipv4:
        raise InterfaceError(f"Interface '{chosen.name}' does not have an IPv4 address.")

    return SelectedInterface(interface=chosen, source_ip=ipv4[0])