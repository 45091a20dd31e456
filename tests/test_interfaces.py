import ipaddress
import socket
from types import SimpleNamespace
from unittest import mock

import psutil
import pytest

from nightwisp.interfaces import (
    InterfaceError,
    NetworkInterface,
    available_interfaces,
    list_available_interfaces,
    select_interface,
)


def _iface(name, index, ips, up=True, loopback=False):
    return NetworkInterface(
        name=name,
        index=index,
        ips=tuple(ipaddress.ip_interface(ip) for ip in ips),
        is_up=up,
        is_loopback=loopback,
    )


@pytest.fixture
def interfaces():
    return [
        _iface("lo", 1, ["127.0.0.1/8"], loopback=True),
        _iface("eth1", 3, ["10.0.0.5/24"]),
        _iface("eth0", 2, ["fe80::1/64", "192.168.1.100/24", "192.168.1.101/24"]),
        _iface("down0", 0, ["172.16.0.1/16"], up=False),
        _iface("v6only", 4, ["2001:db8::1/64"]),
    ]


def test_select_named_interface(interfaces):
    selected = select_interface("eth1", interfaces)
    assert selected.interface.name == "eth1"
    assert selected.source_ip == ipaddress.IPv4Address("10.0.0.5")


def test_select_default_prefers_lowest_index(interfaces):
    selected = select_interface(None, interfaces)
    assert selected.interface.name == "eth0"


def test_source_ip_is_first_ipv4(interfaces):
    selected = select_interface("eth0", interfaces)
    assert selected.source_ip == ipaddress.IPv4Address("192.168.1.100")


def test_named_interface_not_found(interfaces):
    with pytest.raises(InterfaceError, match="Interface 'wlan9' not found."):
        select_interface("wlan9", interfaces)


def test_named_interface_without_ipv4(interfaces):
    with pytest.raises(InterfaceError, match="does not have an IPv4 address"):
        select_interface("v6only", interfaces)


def test_no_suitable_default():
    candidates = [
        _iface("lo", 1, ["127.0.0.1/8"], loopback=True),
        _iface("down0", 2, ["10.1.1.1/24"], up=False),
    ]
    with pytest.raises(InterfaceError, match="No suitable default interface"):
        select_interface(None, candidates)


def test_named_selection_ignores_state(interfaces):
    selected = select_interface("down0", interfaces)
    assert selected.source_ip == ipaddress.IPv4Address("172.16.0.1")


def _fake_psutil():
    addrs = {
        "lo": [SimpleNamespace(family=socket.AF_INET, address="127.0.0.1", netmask="255.0.0.0")],
        "eth0": [
            SimpleNamespace(family=psutil.AF_LINK, address="00:00:5e:00:53:01", netmask=None),
            SimpleNamespace(family=socket.AF_INET, address="192.168.1.100", netmask="255.255.255.0"),
        ],
    }
    stats = {"lo": SimpleNamespace(isup=True), "eth0": SimpleNamespace(isup=True)}
    return addrs, stats


def test_available_interfaces_from_psutil():
    addrs, stats = _fake_psutil()
    with mock.patch.object(psutil, "net_if_addrs", return_value=addrs), mock.patch.object(
        psutil, "net_if_stats", return_value=stats
    ):
        found = {iface.name: iface for iface in available_interfaces()}
    assert set(found) == {"lo", "eth0"}
    assert found["lo"].is_loopback
    assert not found["eth0"].is_loopback
    assert found["eth0"].mac == "00:00:5e:00:53:01"
    assert found["eth0"].ips == (ipaddress.ip_interface("192.168.1.100/24"),)
    selected = select_interface(None, found.values())
    assert selected.interface.name == "eth0"


def test_list_available_interfaces_prints_each(capsys):
    addrs, stats = _fake_psutil()
    with mock.patch.object(psutil, "net_if_addrs", return_value=addrs), mock.patch.object(
        psutil, "net_if_stats", return_value=stats
    ):
        list_available_interfaces()
    out = capsys.readouterr().out
    assert out.startswith("Available network interfaces:")
    assert "  Name: eth0" in out
    assert "  Name: lo" in out
    assert "      - 192.168.1.100/24" in out