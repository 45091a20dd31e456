# nightwisp

A fast TCP SYN ("half-open") port scanner for IPv4 hosts. It builds SYN
packets by hand, sends them through a raw IPv4 socket (with `IP_HDRINCL`)
and classifies every port from the reply it gets back:

- **open**: the target answered from the probed port with SYN+ACK
- **closed**: the target answered from the probed port with anything else
  (typically RST)
- **filtered**: no answer within the timeout
- **error**: sending or receiving failed

Raw sockets need root (or `CAP_NET_RAW`), so run the scanner with those
privileges.

## Installation

```
pip install .
```

## Command line

```
nightwisp TARGET [-p PORTS] [-c CONCURRENCY] [--timeout MS]
          [--scan-delay MS] [--randomize-ports] [--interface NAME] [-v] [-V]
```

| Option | Default | Meaning |
| --- | --- | --- |
| `TARGET` | (required) | IP address of the host to scan; only IPv4 is accepted |
| `-p`, `--ports` | `1-1024` | Single port, comma-separated list, range, or a mix (`22,80-85,443`) |
| `-c`, `--concurrency` | `100` | Number of probes in flight at once |
| `--timeout` | `1000` | Milliseconds to wait for a reply per port |
| `--scan-delay` | `0` | Milliseconds to wait between starting probes |
| `--randomize-ports` | off | Scan ports in random order |
| `--interface` | auto | Network interface whose IPv4 address is used as the source |
| `-v`, `--verbose` | off | Show configuration, closed, filtered and failed ports |
| `-V`, `--version` | | Print the version and exit |

If no interface is given, the lowest-indexed interface that is up, is not
loopback and has an IPv4 address is used. With `-v`, a failed interface
lookup lists the interfaces that are available.

The command exits with status 0 after a scan and 1 when the target is not
IPv4, no interface can be chosen, the port specification is invalid, or the
raw socket cannot be opened.

Examples:

```
sudo nightwisp 192.0.2.10
sudo nightwisp 192.0.2.10 -p 22,80,443 --timeout 500
sudo nightwisp 192.0.2.10 -p 1-65535 -c 500 --randomize-ports -v
```

## Library use

```python
import asyncio

from nightwisp.cli import format_report
from nightwisp.interfaces import select_interface
from nightwisp.ports import parse_ports
from nightwisp.scanner import Scanner

ports = parse_ports("22,80-85,443")      # sorted, unique: [22, 80, 81, ..., 443]
iface = select_interface(None)           # or select_interface("eth0")

with Scanner(
    "192.0.2.10",
    ports,
    iface.source_ip,
    concurrency=100,
    timeout_ms=1000,
    scan_delay_ms=0,
    randomize_ports=False,
) as scanner:
    results = asyncio.run(scanner.run_scan())

print(format_report("192.0.2.10", results, verbose=True))
```

`Scanner` opens a `RawSocketHandler` unless one is passed as `handler=`, and
closes the socket it opened when used as a context manager or when
`close()` is called. `run_scan()` returns a list of `PortStatus` objects
(`port`, `state` as a `PortState`, and `message` for errors) in the order
the probes finished. Source ports are taken from the range 49152-65535.

Other building blocks:

- `nightwisp.ports.parse_ports` raises `PortSpecError` (a `ValueError`) for
  malformed specs, port 0, ports above 65535, reversed ranges and empty specs.
- `nightwisp.interfaces.available_interfaces` returns the local
  `NetworkInterface` objects; `list_available_interfaces` prints them.
  `select_interface` raises `InterfaceError` when no usable interface exists.
- `nightwisp.packet.build_syn_packet` returns the 40 bytes of an IPv4 + TCP
  SYN packet with random IP identification and TCP sequence number, and
  `Ipv4Header.parse` and `TcpHeader.parse` decode headers again.
  `internet_checksum` is the one's-complement checksum used by both headers.
- `nightwisp.scanner.classify_response` decides what a received packet says
  about a probed port, returning a `PortStatus` or `None` for unrelated
  packets.

## Limitations

- Only IPv4 targets and IPv4 source addresses are supported.
- Ports are reported by number only; no service names are looked up.

## Tests

```
pip install ".[test]"
pytest
```