"""Network service discovery — which macOS services should receive DNS changes."""

from __future__ import annotations

import ipaddress
import logging
import re
import subprocess

from dns_switcher.core.base import NetworkService

logger = logging.getLogger(__name__)

NETWORKSETUP = "/usr/sbin/networksetup"
IFCONFIG = "/sbin/ifconfig"

_ORDER_NAME_RE = re.compile(r"^\((\d+|\*)\)\s+(.+)$")
_ORDER_DEVICE_RE = re.compile(r"Device:\s*([^)\s]+)")
_STATUS_RE = re.compile(r"^\s*status:\s*(\w+)", re.MULTILINE)
_INET_RE = re.compile(r"^\s*inet6?\s+(\S+)", re.MULTILINE)


def run_query(argv: list[str], timeout: float = 5) -> str | None:
    """Run an unprivileged query command; None when it fails or is unavailable."""
    try:
        result = subprocess.run(argv, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError, UnicodeDecodeError) as e:
        logger.debug("%s unavailable: %s", argv[0], e)
        return None
    if result.returncode != 0:
        logger.debug("%s exited %d", " ".join(argv), result.returncode)
        return None
    return result.stdout


def list_network_services() -> list[str]:
    """Enabled network services, in the order networksetup reports them."""
    output = run_query([NETWORKSETUP, "-listallnetworkservices"])
    if output is None:
        return []

    services = []
    for line in output.splitlines()[1:]:  # skip header
        line = line.strip()
        if line and not line.startswith("*"):
            services.append(line)
    return services


def service_has_ipv4(service: str) -> bool | None:
    """Check for a bound IPv4 address on a service.

    Returns None when networksetup gives no usable answer.
    """
    output = run_query([NETWORKSETUP, "-getinfo", service])
    if output is None:
        return None

    for line in output.splitlines():
        line = line.strip()
        if line.startswith("IP address:"):
            value = line.split(":", 1)[1].strip()
            return bool(value) and value.lower() != "none"
    return None


def service_device_map() -> dict[str, str]:
    """Map service names to device tokens (en0, utun3…) from the service order listing."""
    output = run_query([NETWORKSETUP, "-listnetworkserviceorder"])
    if output is None:
        return {}

    mapping: dict[str, str] = {}
    current: str | None = None
    for line in output.splitlines():
        line = line.strip()
        name_match = _ORDER_NAME_RE.match(line)
        if name_match:
            current = name_match.group(2).strip()
            continue
        device_match = _ORDER_DEVICE_RE.search(line)
        if current and device_match:
            mapping[current] = device_match.group(1)
            current = None
    return mapping


def _is_routable(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_unspecified)


def device_is_live(device: str) -> bool:
    """Check link status, or routable addresses when ifconfig reports no status."""
    output = run_query([IFCONFIG, device])
    if output is None:
        return False

    status = _STATUS_RE.search(output)
    if status:
        return status.group(1).lower() == "active"

    return any(_is_routable(addr) for addr in _INET_RE.findall(output))


def describe_services() -> list[NetworkService]:
    """Every enabled service with its device and liveness. Recomputed on each call."""
    services = list_network_services()
    devices: dict[str, str] | None = None
    described = []

    for name in services:
        live = service_has_ipv4(name)
        if devices is None:
            devices = service_device_map()
        device = devices.get(name)
        if not live and device:
            live = device_is_live(device)
        described.append(NetworkService(name=name, device=device, live=bool(live)))

    return described


def discover_active_services() -> list[str]:
    """Names of services currently carrying traffic.

    Falls back to the first listed service when nothing looks live, so a
    change always lands somewhere. Empty only when no service is configured.
    """
    services = describe_services()
    if not services:
        logger.warning("No network services found")
        return []

    active = [s.name for s in services if s.live]
    if not active:
        logger.info("No live service detected, falling back to %r", services[0].name)
        return [services[0].name]

    logger.debug("Active services: %s", ", ".join(active))
    return active
