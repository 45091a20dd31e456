"""Command-line entry point for the port scanner."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import sys
import time
from typing import Iterable, Sequence

from . import __version__
from .interfaces import InterfaceError, list_available_interfaces, select_interface
from .ports import PortSpecError, parse_ports
from .scanner import PortState, PortStatus, Scanner, ScannerError

SEPARATOR = "=========================================="


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the scanner command."""
    parser = argparse.ArgumentParser(
        prog="nightwisp", description="NIGHT WISP: A fast and stealthy port scanner."
    )
    parser.add_argument("target", type=ipaddress.ip_address, help="Target host IP address")
    parser.add_argument(
        "-p",
        "--ports",
        default="1-1024",
        help="Ports to scan: a port, a comma-separated list (80,443) or a range (1-1024)",
    )
    parser.add_argument(
        "-c", "--concurrency", type=int, default=100, help="Number of concurrent probes"
    )
    parser.add_argument(
        "--timeout", type=int, default=1000, help="Timeout in milliseconds for each port"
    )
    parser.add_argument(
        "--scan-delay",
        type=int,
        default=0,
        help="Delay in milliseconds between starting probes",
    )
    parser.add_argument(
        "--randomize-ports", action="store_true", help="Randomize port scanning order"
    )
    parser.add_argument("--interface", default=None, help="Network interface to use")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.2f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.2f}ms"
    if seconds >= 1e-6:
        return f"{seconds * 1e6:.2f}µs"
    return f"{seconds * 1e9:.2f}ns"


def format_report(
    target: object, results: Iterable[PortStatus], verbose: bool = False
) -> str:
    """Render the scan results as the text printed after a scan."""
    by_state: dict[PortState, list[int]] = {state: [] for state in PortState}
    errors: dict[int, str] = {}
    for status in results:
        if status.state is PortState.ERROR:
            errors[status.port] = status.message or ""
        else:
            by_state[status.state].append(status.port)

    lines = ["", f"--- Open Ports on {target} ---"]
    open_ports = sorted(by_state[PortState.OPEN])
    if open_ports:
        lines.extend(f"  Port {port:<5} : Open" for port in open_ports)
    else:
        lines.append("No open ports found.")

    if verbose:
        closed = sorted(by_state[PortState.CLOSED])
        filtered = sorted(by_state[PortState.FILTERED])
        if closed:
            lines += ["", f"--- Closed Ports ({len(closed)}) ---", f"  {closed}"]
        if filtered:
            lines += [
                "",
                f"--- Filtered Ports (No Response/Timeout) ({len(filtered)}) ---",
                f"  {filtered}",
            ]
        if errors:
            lines += ["", f"--- Ports with Errors ({len(errors)}) ---"]
            lines.extend(
                f"  Port {port:<5} : Error - {message}"
                for port, message in sorted(errors.items())
            )

    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the scanner from the command line and return the exit status."""
    args = build_parser().parse_args(argv)
    target = args.target
    verbose = args.verbose

    if target.version != 4:
        print("Error: NIGHT WISP currently only supports IPv4 targets.", file=sys.stderr)
        return 1

    if verbose:
        print("NIGHT WISP - Fast & Stealthy Port Scanner")
        print(SEPARATOR)
        print("Configuration:")
        print(f"  Target IP: {target}")
        print(f"  Ports: {args.ports}")
        print(f"  Concurrency: {args.concurrency}")
        print(f"  Timeout (ms): {args.timeout}")
        print(f"  Scan Delay (ms): {args.scan_delay}")
        print(f"  Randomize Ports: {str(args.randomize_ports).lower()}")

    try:
        selected = select_interface(args.interface)
    except InterfaceError as exc:
        print(f"Error selecting network interface: {exc}", file=sys.stderr)
        if verbose:
            list_available_interfaces()
        else:
            print(
                "Hint: Try running with -v to see available interfaces or specify one "
                "with --interface <name>.",
                file=sys.stderr,
            )
        return 1
    if verbose:
        print(f"  Interface: {selected.interface.name} (Source IP: {selected.source_ip})")

    try:
        ports = parse_ports(args.ports)
    except PortSpecError as exc:
        print(f"Error parsing port specification '{args.ports}': {exc}", file=sys.stderr)
        return 1
    if verbose:
        print(f"  Effective Ports ({len(ports)}): {ports}")
        print(SEPARATOR)
        print("Starting scan...")
    else:
        print(f"Scanning {target} on ports [{args.ports}]...")

    try:
        scanner = Scanner(
            target,
            ports,
            selected.source_ip,
            concurrency=args.concurrency,
            timeout_ms=args.timeout,
            scan_delay_ms=args.scan_delay,
            randomize_ports=args.randomize_ports,
        )
    except (ScannerError, ValueError) as exc:
        print(f"Error initializing scanner: {exc}", file=sys.stderr)
        print(
            "Hint: This might be due to issues creating raw sockets. "
            "Ensure you have root/administrator privileges.",
            file=sys.stderr,
        )
        return 1

    with scanner:
        start = time.perf_counter()
        results = asyncio.run(scanner.run_scan())
        duration = _format_duration(time.perf_counter() - start)

    if verbose:
        print(f"Scan completed in {duration}.")
        print(SEPARATOR)
        print(f"Results ({len(results)} ports scanned):")

    print(format_report(target, results, verbose))
    print(SEPARATOR)
    if verbose:
        print(f"NIGHT WISP scan finished in {duration}.")
    else:
        print(f"Scan finished in {duration}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())