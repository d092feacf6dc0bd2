"""Current resolver status — which profile, if any, the system is using."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from dns_switcher.core.base import Profile
from dns_switcher.resolver.interfaces import NETWORKSETUP, run_query

logger = logging.getLogger(__name__)

SCUTIL = "/usr/sbin/scutil"
RESOLV_CONF = Path("/etc/resolv.conf")

_SCUTIL_NAMESERVER_RE = re.compile(r"^\s*nameserver\[\d+\]\s*:\s*(\S+)", re.MULTILINE)


def _resolv_conf_servers() -> list[str]:
    try:
        text = RESOLV_CONF.read_text(errors="replace")
    except OSError as e:
        logger.debug("Could not read %s: %s", RESOLV_CONF, e)
        return []
    servers = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            servers.append(parts[1])
    return servers


def get_system_dns_servers() -> list[str]:
    """Resolvers the system is actually querying, from `scutil --dns`.

    Falls back to /etc/resolv.conf when scutil is unavailable or lists none.
    Scoped resolvers repeat the same addresses, so the list is de-duplicated
    in first-seen order.
    """
    output = run_query([SCUTIL, "--dns"])
    servers = _SCUTIL_NAMESERVER_RE.findall(output) if output else []
    if not servers:
        servers = _resolv_conf_servers()
    return list(dict.fromkeys(servers))


def get_service_dns_servers(service: str) -> list[str]:
    """Manually configured servers of one service; [] when it uses DHCP defaults."""
    output = run_query([NETWORKSETUP, "-getdnsservers", service])
    if output is None or "aren't any DNS Servers" in output:
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


def match_profile(servers: Iterable[str], profiles: Iterable[Profile]) -> Profile | None:
    """Find the profile whose hosts match `servers`.

    An exact set match wins. Otherwise the first profile that includes every
    configured server is returned (e.g. only its IPv4 addresses were set).
    """
    configured = {s.lower() for s in servers}
    if not configured:
        return None

    candidates = list(profiles)
    for profile in candidates:
        if {a.host.lower() for a in profile.addresses} == configured:
            return profile
    for profile in candidates:
        hosts = {a.host.lower() for a in profile.addresses}
        if hosts and configured <= hosts:
            return profile
    return None
