"""Construction and parsing of raw IPv4/TCP headers."""

from __future__ import annotations

import enum
import ipaddress
import random
import struct
from dataclasses import dataclass, replace

IPV4_HEADER_LEN = 20
TCP_HEADER_LEN = 20
TCP_HEADER_LEN_WORDS = 5
IPPROTO_TCP = 6
IPV4_DONT_FRAGMENT = 0b010
DEFAULT_TTL = 64

_IPV4_FORMAT = struct.Struct("!BBHHHBBH4s4s")
_TCP_FORMAT = struct.Struct("!HHIIBBHHH")

IPv4Like = str | ipaddress.IPv4Address


class TcpFlags(enum.IntFlag):
    """TCP control bits."""

    FIN = 0x01
    SYN = 0x02
    RST = 0x04
    PSH = 0x08
    ACK = 0x10
    URG = 0x20
    ECE = 0x40
    CWR = 0x80


def internet_checksum(data: bytes) -> int:
    """Return the 16-bit one's-complement checksum of ``data``."""
    data = bytes(data)
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass(frozen=True)
class Ipv4Header:
    """An IPv4 header."""

    source: ipaddress.IPv4Address
    destination: ipaddress.IPv4Address
    protocol: int = IPPROTO_TCP
    ttl: int = DEFAULT_TTL
    identification: int = 0
    flags: int = 0
    fragment_offset: int = 0
    total_length: int = IPV4_HEADER_LEN
    header_length: int = 5
    version: int = 4
    dscp: int = 0
    ecn: int = 0
    checksum: int = 0
    options: bytes = b""

    def to_bytes(self) -> bytes:
        fixed = _IPV4_FORMAT.pack(
            (self.version << 4) | self.header_length,
            (self.dscp << 2) | self.ecn,
            self.total_length,
            self.identification,
            (self.flags << 13) | self.fragment_offset,
            self.ttl,
            self.protocol,
            self.checksum,
            self.source.packed,
            self.destination.packed,
        )
        return fixed + self.options

    def with_checksum(self) -> Ipv4Header:
        """Return a copy carrying the correct header checksum."""
        blank = replace(self, checksum=0)
        return replace(self, checksum=internet_checksum(blank.to_bytes()))

    @classmethod
    def parse(cls, data: bytes) -> Ipv4Header:
        """Parse the IPv4 header at the start of ``data``."""
        if len(data) < IPV4_HEADER_LEN:
            raise ValueError("buffer too short for an IPv4 header")
        (
            version_ihl,
            dscp_ecn,
            total_length,
            identification,
            flags_fragment,
            ttl,
            protocol,
            checksum,
            source,
            destination,
        ) = _IPV4_FORMAT.unpack_from(data)
        header_length = version_ihl & 0x0F
        return cls(
            source=ipaddress.IPv4Address(source),
            destination=ipaddress.IPv4Address(destination),
            protocol=protocol,
            ttl=ttl,
            identification=identification,
            flags=flags_fragment >> 13,
            fragment_offset=flags_fragment & 0x1FFF,
            total_length=total_length,
            header_length=header_length,
            version=version_ihl >> 4,
            dscp=dscp_ecn >> 2,
            ecn=dscp_ecn & 0x03,
            checksum=checksum,
            options=bytes(data[IPV4_HEADER_LEN : max(header_length * 4, IPV4_HEADER_LEN)]),
        )


@dataclass(frozen=True)
class TcpHeader:
    """A TCP header."""

    source_port: int
    destination_port: int
    sequence: int = 0
    acknowledgement: int = 0
    data_offset: int = TCP_HEADER_LEN_WORDS
    reserved: int = 0
    flags: TcpFlags = TcpFlags(0)
    window: int = 0
    checksum: int = 0
    urgent_ptr: int = 0
    options: bytes = b""

    def to_bytes(self) -> bytes:
        fixed = _TCP_FORMAT.pack(
            self.source_port,
            self.destination_port,
            self.sequence,
            self.acknowledgement,
            (self.data_offset << 4) | self.reserved,
            int(self.flags),
            self.window,
            self.checksum,
            self.urgent_ptr,
        )
        return fixed + self.options

    def with_checksum(self, source_ip: IPv4Like, dest_ip: IPv4Like) -> TcpHeader:
        """Return a copy carrying the checksum over the IPv4 pseudo-header."""
        segment = replace(self, checksum=0).to_bytes()
        pseudo = struct.pack(
            "!4s4sBBH",
            ipaddress.IPv4Address(source_ip).packed,
            ipaddress.IPv4Address(dest_ip).packed,
            0,
            IPPROTO_TCP,
            len(segment),
        )
        return replace(self, checksum=internet_checksum(pseudo + segment))

    @classmethod
    def parse(cls, data: bytes) -> TcpHeader:
        """Parse the TCP header at the start of ``data``."""
        if len(data) < TCP_HEADER_LEN:
            raise ValueError("buffer too short for a TCP header")
        (
            source_port,
            destination_port,
            sequence,
            acknowledgement,
            offset_reserved,
            flags,
            window,
            checksum,
            urgent_ptr,
        ) = _TCP_FORMAT.unpack_from(data)
        data_offset = offset_reserved >> 4
        return cls(
            source_port=source_port,
            destination_port=destination_port,
            sequence=sequence,
            acknowledgement=acknowledgement,
            data_offset=data_offset,
            reserved=offset_reserved & 0x0F,
            flags=TcpFlags(flags),
            window=window,
            checksum=checksum,
            urgent_ptr=urgent_ptr,
            options=bytes(data[TCP_HEADER_LEN : max(data_offset * 4, TCP_HEADER_LEN)]),
        )


def _check_range(name: str, value: int, upper: int) -> None:
    if not 0 <= value <= upper:
        raise ValueError(f"{name} must be between 0 and {upper}, got {value}")


def build_syn_packet(
    source_ip: IPv4Like,
    dest_ip: IPv4Like,
    source_port: int,
    dest_port: int,
    ttl: int = DEFAULT_TTL,
) -> bytes:
    """Build the raw bytes of an IPv4 packet carrying a TCP SYN segment."""
    _check_range("source_port", source_port, 0xFFFF)
    _check_range("dest_port", dest_port, 0xFFFF)
    _check_range("ttl", ttl, 0xFF)
    source = ipaddress.IPv4Address(source_ip)
    destination = ipaddress.IPv4Address(dest_ip)

    ip_header = Ipv4Header(
        source=source,
        destination=destination,
        protocol=IPPROTO_TCP,
        ttl=ttl,
        identification=random.getrandbits(16),
        flags=IPV4_DONT_FRAGMENT,
        total_length=IPV4_HEADER_LEN + TCP_HEADER_LEN,
    ).with_checksum()

    tcp_header = TcpHeader(
        source_port=source_port,
        destination_port=dest_port,
        sequence=random.getrandbits(32),
        acknowledgement=0,
        data_offset=TCP_HEADER_LEN_WORDS,
        flags=TcpFlags.SYN,
        window=65535,
        urgent_ptr=0,
    ).with_checksum(source, destination)

    return ip_header.to_bytes() + tcp_header.to_bytes()