"""Parsing of port specifications such as ``"22,80-85,443"``."""

from __future__ import annotations

import re

MAX_PORT = 65535

_NUMBER = re.compile(r"\+?[0-9]+")


class PortSpecError(ValueError):
    """Raised when a port specification cannot be parsed."""


def _parse_port(text: str) -> int | None:
    """Return ``text`` as a 16-bit port number, or None if it is not one."""
    if not _NUMBER.fullmatch(text):
        return None
    value = int(text)
    return value if value <= MAX_PORT else None


def parse_ports(spec: str) -> list[int]:
    """Parse a comma-separated list of ports and ranges into sorted unique ports."""
    ports: set[int] = set()

    for raw_part in spec.split(","):
        part = raw_part.strip()
        if not part:
            continue

        if "-" in part:
            start_text, end_text = (piece.strip() for piece in part.split("-", 1))

            start = _parse_port(start_text)
            if start is None:
                raise PortSpecError(
                    f"Invalid start port number: '{start_text}' in range '{part}'"
                )
            end = _parse_port(end_text)
            if end is None:
                raise PortSpecError(
                    f"Invalid end port number: '{end_text}' in range '{part}'"
                )
            if start == 0 or end == 0:
                raise PortSpecError(f"Port number 0 is invalid in range '{part}'")
            if start > end:
                raise PortSpecError(
                    f"Start port {start} cannot be greater than end port {end} "
                    f"in range '{part}'"
                )
            ports.update(range(start, end + 1))
        else:
            port = _parse_port(part)
            if port is None:
                raise PortSpecError(f"Invalid port number: '{part}'")
            if port == 0:
                raise PortSpecError(f"Port number 0 is invalid: '{part}'")
            ports.add(port)

    if not ports:
        raise PortSpecError("No ports specified or parsed.")

    return sorted(ports)