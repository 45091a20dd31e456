import ipaddress
import socket
from types import SimpleNamespace
from unittest import mock

import pytest

from nightwisp.cli import build_parser, format_report, main
from nightwisp.scanner import PortState, PortStatus

TARGET = ipaddress.IPv4Address("192.0.2.10")


def fake_addrs():
    return {
        "eth-test": [
            SimpleNamespace(family=socket.AF_INET, address="10.0.0.5", netmask="255.255.255.0")
        ]
    }


def fake_stats():
    return {"eth-test": SimpleNamespace(isup=True)}


def test_parser_defaults():
    args = build_parser().parse_args(["192.0.2.10"])
    assert args.target == TARGET
    assert args.ports == "1-1024"
    assert (args.concurrency, args.timeout, args.scan_delay) == (100, 1000, 0)
    assert args.randomize_ports is False
    assert args.interface is None
    assert args.verbose is False


def test_parser_rejects_invalid_target():
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["not-an-ip"])
    assert info.value.code == 2


def test_report_no_open_ports():
    report = format_report(TARGET, [PortStatus(80, PortState.CLOSED)], False)
    assert f"--- Open Ports on {TARGET} ---" in report
    assert "No open ports found." in report
    assert "Closed Ports" not in report


def test_report_open_ports_sorted():
    results = [PortStatus(443, PortState.OPEN), PortStatus(22, PortState.OPEN)]
    report = format_report(TARGET, results, False)
    assert "No open ports found." not in report
    assert report.index("Port 22 ") < report.index("Port 443")
    assert report.count(": Open") == 2


def test_report_verbose_sections():
    results = [
        PortStatus(3, PortState.CLOSED),
        PortStatus(1, PortState.CLOSED),
        PortStatus(2, PortState.CLOSED),
        PortStatus(9, PortState.FILTERED),
        PortStatus(7, PortState.ERROR, "boom"),
    ]
    report = format_report(TARGET, results, True)
    assert "--- Closed Ports (3) ---" in report
    assert "[1, 2, 3]" in report
    assert "--- Filtered Ports (No Response/Timeout) (1) ---" in report
    assert "Error - boom" in report
    assert "Error - boom" not in format_report(TARGET, results, False)


def test_main_rejects_ipv6(capsys):
    assert main(["2001:db8::1"]) == 1
    err = capsys.readouterr().err
    assert "Error: NIGHT WISP currently only supports IPv4 targets." in err


@mock.patch("psutil.net_if_stats", return_value={})
@mock.patch("psutil.net_if_addrs", return_value={})
def test_main_unknown_interface(addrs, stats, capsys):
    assert main(["192.0.2.10", "--interface", "missing0"]) == 1
    err = capsys.readouterr().err
    assert "Error selecting network interface: Interface 'missing0' not found." in err
    assert "Hint: Try running with -v" in err


@mock.patch("psutil.net_if_stats", return_value={})
@mock.patch("psutil.net_if_addrs", return_value={})
def test_main_no_default_interface_verbose_lists(addrs, stats, capsys):
    assert main(["192.0.2.10", "-v"]) == 1
    captured = capsys.readouterr()
    assert "No suitable default interface found" in captured.err
    assert "Available network interfaces:" in captured.out


def test_main_bad_port_spec(capsys):
    with mock.patch("psutil.net_if_addrs", return_value=fake_addrs()), mock.patch(
        "psutil.net_if_stats", return_value=fake_stats()
    ):
        code = main(["192.0.2.10", "--interface", "eth-test", "-p", "0", "-v"])
    assert code == 1
    captured = capsys.readouterr()
    assert "Error parsing port specification '0'" in captured.err
    assert "Interface: eth-test (Source IP: 10.0.0.5)" in captured.out