"""Tests for network service discovery."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from dns_switcher.resolver.interfaces import (
    describe_services,
    device_is_live,
    discover_active_services,
    list_network_services,
    service_device_map,
    service_has_ipv4,
)

_RUN = "dns_switcher.resolver.interfaces.subprocess.run"

LIST_ALL = """\
An asterisk (*) denotes that a network service is disabled.
Wi-Fi
Ethernet
*Bluetooth PAN
Thunderbolt Bridge

"""

SERVICE_ORDER = """\
An asterisk (*) denotes that a network service is disabled.
(1) Wi-Fi
(Hardware Port: Wi-Fi, Device: en0)

(2) Ethernet
(Hardware Port: Ethernet, Device: en1)

(*) Bluetooth PAN
(Hardware Port: Bluetooth PAN, Device: en3)

(3) Thunderbolt Bridge
(Hardware Port: Thunderbolt Bridge, Device: bridge0)

(4) Tailscale
(Hardware Port: com.tailscale.ipn.macos, Device: )
"""

GETINFO_DHCP = """\
DHCP Configuration
IP address: 192.168.1.20
Subnet mask: 255.255.255.0
Router: 192.168.1.1
Client ID:
IPv6: Automatic
IPv6 IP address: none
IPv6 Router: none
Wi-Fi ID: aa:bb:cc:dd:ee:ff
"""

GETINFO_NONE = """\
DHCP Configuration
IP address: none
Subnet mask: none
Router: none
IPv6 IP address: none
"""

IFCONFIG_ACTIVE = """\
en1: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
\tether 11:22:33:44:55:66
\tmedia: autoselect (1000baseT <full-duplex>)
\tstatus: active
"""

IFCONFIG_INACTIVE = """\
bridge0: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
\tstatus: inactive
"""

IFCONFIG_LINK_LOCAL_ONLY = """\
utun3: flags=8051<UP,POINTOPOINT,RUNNING,MULTICAST> mtu 1380
\tinet6 fe80::1234:5678%utun3 prefixlen 64 scopeid 0x12
"""

IFCONFIG_ROUTABLE_V6 = """\
utun4: flags=8051<UP,POINTOPOINT,RUNNING,MULTICAST> mtu 1280
\tinet6 fe80::1%utun4 prefixlen 64 scopeid 0x13
\tinet6 fd7a:115c:a1e0::1 prefixlen 48
"""


def _mock_macos(outputs: dict[tuple[str, ...], str | None]):
    """side_effect for subprocess.run keyed by the argv after the binary path."""

    def side_effect(cmd, **kwargs):
        key = tuple(cmd[1:])
        output = outputs.get(key)
        if output is None:
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="error")
        return subprocess.CompletedProcess(cmd, 0, stdout=output, stderr="")

    return side_effect


def test_list_services_skips_header_disabled_and_blank():
    with patch(_RUN, side_effect=_mock_macos({("-listallnetworkservices",): LIST_ALL})):
        assert list_network_services() == ["Wi-Fi", "Ethernet", "Thunderbolt Bridge"]


def test_list_services_without_networksetup():
    with patch(_RUN, side_effect=FileNotFoundError("networksetup")):
        assert list_network_services() == []


@pytest.mark.parametrize(
    "error",
    [
        PermissionError(13, "Permission denied"),
        UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
        subprocess.SubprocessError("broken pipe"),
    ],
)
def test_list_services_query_errors_are_inconclusive(error):
    with patch(_RUN, side_effect=error):
        assert list_network_services() == []


def test_service_has_ipv4():
    outputs = {("-getinfo", "Wi-Fi"): GETINFO_DHCP, ("-getinfo", "Ethernet"): GETINFO_NONE}
    with patch(_RUN, side_effect=_mock_macos(outputs)):
        assert service_has_ipv4("Wi-Fi") is True
        assert service_has_ipv4("Ethernet") is False
        assert service_has_ipv4("Missing") is None


def test_service_has_ipv4_ignores_ipv6_line():
    output = "IPv6 IP address: 2001:db8::1\n"
    with patch(_RUN, side_effect=_mock_macos({("-getinfo", "VPN"): output})):
        assert service_has_ipv4("VPN") is None


def test_service_has_ipv4_timeout_is_inconclusive():
    with patch(_RUN, side_effect=subprocess.TimeoutExpired("networksetup", 5)):
        assert service_has_ipv4("Wi-Fi") is None


def test_service_device_map():
    with patch(_RUN, side_effect=_mock_macos({("-listnetworkserviceorder",): SERVICE_ORDER})):
        mapping = service_device_map()
    assert mapping["Wi-Fi"] == "en0"
    assert mapping["Ethernet"] == "en1"
    assert mapping["Thunderbolt Bridge"] == "bridge0"
    assert "Tailscale" not in mapping


def test_device_status_markers():
    outputs = {("en1",): IFCONFIG_ACTIVE, ("bridge0",): IFCONFIG_INACTIVE}
    with patch(_RUN, side_effect=_mock_macos(outputs)):
        assert device_is_live("en1") is True
        assert device_is_live("bridge0") is False
        assert device_is_live("en9") is False


def test_device_addresses_without_status():
    outputs = {("utun3",): IFCONFIG_LINK_LOCAL_ONLY, ("utun4",): IFCONFIG_ROUTABLE_V6}
    with patch(_RUN, side_effect=_mock_macos(outputs)):
        assert device_is_live("utun3") is False
        assert device_is_live("utun4") is True


def test_discover_uses_ipv4_then_device_status():
    outputs = {
        ("-listallnetworkservices",): LIST_ALL,
        ("-listnetworkserviceorder",): SERVICE_ORDER,
        ("-getinfo", "Wi-Fi"): GETINFO_DHCP,
        ("-getinfo", "Ethernet"): GETINFO_NONE,
        ("-getinfo", "Thunderbolt Bridge"): GETINFO_NONE,
        ("en1",): IFCONFIG_ACTIVE,
        ("bridge0",): IFCONFIG_INACTIVE,
    }
    with patch(_RUN, side_effect=_mock_macos(outputs)):
        assert discover_active_services() == ["Wi-Fi", "Ethernet"]


def test_discover_falls_back_to_first_service():
    outputs = {
        ("-listallnetworkservices",): LIST_ALL,
        ("-listnetworkserviceorder",): SERVICE_ORDER,
        ("-getinfo", "Wi-Fi"): GETINFO_NONE,
        ("-getinfo", "Ethernet"): GETINFO_NONE,
        ("-getinfo", "Thunderbolt Bridge"): GETINFO_NONE,
        ("en0",): IFCONFIG_INACTIVE,
        ("en1",): IFCONFIG_INACTIVE,
        ("bridge0",): IFCONFIG_INACTIVE,
    }
    with patch(_RUN, side_effect=_mock_macos(outputs)):
        assert discover_active_services() == ["Wi-Fi"]


def test_discover_nothing_configured():
    with patch(_RUN, side_effect=FileNotFoundError("networksetup")):
        assert discover_active_services() == []


def test_describe_services_is_not_cached():
    first = {
        ("-listallnetworkservices",): LIST_ALL,
        ("-getinfo", "Wi-Fi"): GETINFO_DHCP,
    }
    second = {
        ("-listallnetworkservices",): LIST_ALL,
        ("-getinfo", "Ethernet"): GETINFO_DHCP,
    }
    with patch(_RUN, side_effect=_mock_macos(first)):
        assert [s.name for s in describe_services() if s.live] == ["Wi-Fi"]
    with patch(_RUN, side_effect=_mock_macos(second)):
        assert [s.name for s in describe_services() if s.live] == ["Ethernet"]
