"""Asynchronous TCP SYN port scanning over a raw IPv4 socket."""

from __future__ import annotations

import asyncio
import enum
import ipaddress
import random
import socket
from dataclasses import dataclass
from typing import Iterable, Protocol

from .packet import (
    DEFAULT_TTL,
    IPPROTO_TCP,
    IPV4_HEADER_LEN,
    IPv4Like,
    Ipv4Header,
    TcpFlags,
    TcpHeader,
    build_syn_packet,
)

EPHEMERAL_PORT_START = 49152
EPHEMERAL_PORT_END = 65535
RECEIVE_BUFFER_SIZE = 65535


class PortState(enum.Enum):
    """The outcome of probing one port."""

    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"
    ERROR = "error"


@dataclass(frozen=True)
class PortStatus:
    """The state of a scanned port, with a message when the probe failed."""

    port: int
    state: PortState
    message: str | None = None


class ScannerError(Exception):
    """Raised when probes cannot be sent or replies cannot be received."""


class _Transport(Protocol):
    async def send_syn_packet(
        self,
        source_ip: IPv4Like,
        target_ip: IPv4Like,
        source_port: int,
        dest_port: int,
    ) -> None: ...

    async def receive(self) -> bytes: ...


def _parse_tcp(packet: bytes) -> tuple[Ipv4Header, TcpHeader] | None:
    try:
        ip_header = Ipv4Header.parse(packet)
        if ip_header.protocol != IPPROTO_TCP or ip_header.header_length * 4 < IPV4_HEADER_LEN:
            return None
        tcp_header = TcpHeader.parse(packet[ip_header.header_length * 4 :])
    except ValueError:
        return None
    return ip_header, tcp_header


def classify_response(
    packet: bytes,
    target_ip: IPv4Like,
    expected_src_port: int,
    expected_dest_port: int,
) -> PortStatus | None:
    """Classify a received IPv4 packet as a reply to one probe, or return None."""
    parsed = _parse_tcp(packet)
    if parsed is None:
        return None
    ip_header, tcp_header = parsed
    if ip_header.source != ipaddress.IPv4Address(target_ip):
        return None
    if (
        tcp_header.source_port != expected_src_port
        or tcp_header.destination_port != expected_dest_port
    ):
        return None
    flags = tcp_header.flags
    if TcpFlags.SYN in flags and TcpFlags.ACK in flags:
        return PortStatus(expected_src_port, PortState.OPEN)
    # Any other reply from the probed port, RST or not, counts as closed.
    return PortStatus(expected_src_port, PortState.CLOSED)


class RawSocketHandler:
    """Sends SYN probes and receives IPv4 packets through a raw socket."""

    def __init__(self, sock: socket.socket | None = None) -> None:
        if sock is None:
            try:
                sock = socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_TCP)
            except OSError as exc:
                raise ScannerError(f"Failed to create transport channel: {exc}") from exc
            try:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_HDRINCL, 1)
            except OSError as exc:
                sock.close()
                raise ScannerError(f"Failed to create transport channel: {exc}") from exc
        sock.setblocking(False)
        self._sock = sock

    async def send_syn_packet(
        self,
        source_ip: IPv4Like,
        target_ip: IPv4Like,
        source_port: int,
        dest_port: int,
    ) -> None:
        """Send one TCP SYN probe to ``target_ip:dest_port``."""
        try:
            packet = build_syn_packet(source_ip, target_ip, source_port, dest_port, DEFAULT_TTL)
        except ValueError as exc:
            raise ScannerError(str(exc)) from exc
        address = (str(ipaddress.IPv4Address(target_ip)), 0)
        try:
            self._sock.sendto(packet, address)
        except OSError as exc:
            raise ScannerError(f"Failed to send packet: {exc}") from exc

    async def receive(self) -> bytes:
        """Wait for the next packet arriving on the socket."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.sock_recv(self._sock, RECEIVE_BUFFER_SIZE)
        except OSError as exc:
            raise ScannerError(f"Failed to receive packet: {exc}") from exc

    def close(self) -> None:
        """Close the underlying socket."""
        self._sock.close()

    def __enter__(self) -> RawSocketHandler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _ResponseDispatcher:
    """Reads packets and hands each reply to the probe waiting for it."""

    def __init__(self, transport: _Transport, target_ip: ipaddress.IPv4Address) -> None:
        self._transport = transport
        self._target_ip = target_ip
        self._waiters: dict[tuple[int, int], asyncio.Future[PortStatus]] = {}
        self._error: ScannerError | None = None

    def expect(self, target_port: int, source_port: int) -> asyncio.Future[PortStatus]:
        waiter: asyncio.Future[PortStatus] = asyncio.get_running_loop().create_future()
        if self._error is not None:
            waiter.set_exception(self._error)
        else:
            self._waiters[(target_port, source_port)] = waiter
        return waiter

    def forget(self, target_port: int, source_port: int) -> None:
        self._waiters.pop((target_port, source_port), None)

    async def run(self) -> None:
        while True:
            try:
                packet = await self._transport.receive()
            except ScannerError as exc:
                self._error = exc
                for waiter in self._waiters.values():
                    if not waiter.done():
                        waiter.set_exception(exc)
                self._waiters.clear()
                return
            self._dispatch(packet)

    def _dispatch(self, packet: bytes) -> None:
        parsed = _parse_tcp(packet)
        if parsed is None:
            return
        _, tcp_header = parsed
        key = (tcp_header.source_port, tcp_header.destination_port)
        waiter = self._waiters.get(key)
        if waiter is None or waiter.done():
            return
        status = classify_response(packet, self._target_ip, *key)
        if status is not None:
            waiter.set_result(status)


class Scanner:
    """Runs a concurrent SYN scan of a set of ports on one IPv4 target."""

    def __init__(
        self,
        target_ip: IPv4Like,
        ports: Iterable[int],
        source_ip: IPv4Like,
        concurrency: int = 100,
        timeout_ms: int = 1000,
        scan_delay_ms: int = 0,
        randomize_ports: bool = False,
        handler: _Transport | None = None,
    ) -> None:
        try:
            self.target_ip = ipaddress.IPv4Address(target_ip)
        except ipaddress.AddressValueError as exc:
            raise ScannerError(f"IPv6 or invalid target IP not supported: {target_ip}") from exc
        try:
            self.source_ip = ipaddress.IPv4Address(source_ip)
        except ipaddress.AddressValueError as exc:
            raise ScannerError("IPv6 not supported for source IP") from exc
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if timeout_ms < 0 or scan_delay_ms < 0:
            raise ValueError("timeout and scan delay must not be negative")

        self.ports = list(ports)
        self.concurrency = concurrency
        self.timeout_ms = timeout_ms
        self.scan_delay_ms = scan_delay_ms
        self.randomize_ports = randomize_ports
        self._owns_handler = handler is None
        self._handler: _Transport = RawSocketHandler() if handler is None else handler
        self._active_ports: set[int] = set()
        self._next_port = EPHEMERAL_PORT_START

    def next_ephemeral_port(self) -> int:
        """Reserve the next free source port from the ephemeral range."""
        if len(self._active_ports) > EPHEMERAL_PORT_END - EPHEMERAL_PORT_START:
            raise ScannerError("No free ephemeral source port available")
        while True:
            port = self._next_port
            self._next_port = port + 1 if port < EPHEMERAL_PORT_END else EPHEMERAL_PORT_START
            if port not in self._active_ports:
                self._active_ports.add(port)
                return port

    def release_ephemeral_port(self, port: int) -> None:
        """Return a source port to the pool."""
        self._active_ports.discard(port)

    async def run_scan(self) -> list[PortStatus]:
        """Probe every port and return the statuses in order of completion."""
        ports = list(self.ports)
        if self.randomize_ports:
            random.shuffle(ports)

        semaphore = asyncio.Semaphore(self.concurrency)
        results: list[PortStatus] = []
        dispatcher = _ResponseDispatcher(self._handler, self.target_ip)
        reader = asyncio.create_task(dispatcher.run())
        probes: list[asyncio.Task[None]] = []
        try:
            for target_port in ports:
                await semaphore.acquire()
                try:
                    source_port = self.next_ephemeral_port()
                except ScannerError:
                    semaphore.release()
                    raise
                waiter = dispatcher.expect(target_port, source_port)
                probes.append(
                    asyncio.create_task(
                        self._probe(
                            target_port, source_port, waiter, dispatcher, semaphore, results
                        )
                    )
                )
                if self.scan_delay_ms > 0:
                    await asyncio.sleep(self.scan_delay_ms / 1000)
            await asyncio.gather(*probes)
        finally:
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        return results

    async def _probe(
        self,
        target_port: int,
        source_port: int,
        waiter: asyncio.Future[PortStatus],
        dispatcher: _ResponseDispatcher,
        semaphore: asyncio.Semaphore,
        results: list[PortStatus],
    ) -> None:
        try:
            try:
                await self._handler.send_syn_packet(
                    self.source_ip, self.target_ip, source_port, target_port
                )
            except ScannerError as exc:
                results.append(PortStatus(target_port, PortState.ERROR, f"Send error: {exc}"))
                return
            try:
                status = await asyncio.wait_for(waiter, self.timeout_ms / 1000)
            except asyncio.TimeoutError:
                status = PortStatus(target_port, PortState.FILTERED)
            except ScannerError as exc:
                status = PortStatus(target_port, PortState.ERROR, f"Receive error: {exc}")
            results.append(status)
        finally:
            dispatcher.forget(target_port, source_port)
            if waiter.done():
                if not waiter.cancelled():
                    waiter.exception()
            else:
                waiter.cancel()
            self.release_ephemeral_port(source_port)
            semaphore.release()

    def close(self) -> None:
        """Close the raw socket if this scanner opened it."""
        if self._owns_handler and isinstance(self._handler, RawSocketHandler):
            self._handler.close()

    def __enter__(self) -> Scanner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()