"""Resolver command builder — networksetup commands and the /etc/resolver zone file."""

from __future__ import annotations

from collections.abc import Sequence

from dns_switcher.core.base import ResolverAddress
from dns_switcher.core.paths import RESOLVER_DIR, RESOLVER_ZONE_FILE
from dns_switcher.core.privilege import CommandStep, PrivilegedCommand
from dns_switcher.resolver.interfaces import NETWORKSETUP

ZONE_FILE_HEADER = "# Custom DNS configuration with port"


def needs_zone_file(addresses: Sequence[ResolverAddress]) -> bool:
    return any(a.has_custom_port for a in addresses)


def set_servers_command(service: str, hosts: Sequence[str]) -> PrivilegedCommand:
    """Set the resolver list of one service, then bounce automatic IPv6.

    A bare -setdnsservers is not reliably picked up for IPv6, so the service
    is switched off and back to automatic IPv6 afterwards.
    """
    return PrivilegedCommand(
        description=f"Set DNS servers for '{service}'",
        steps=[
            CommandStep(argv=[NETWORKSETUP, "-setdnsservers", service, *hosts]),
            CommandStep(argv=[NETWORKSETUP, "-setv6off", service], required=False),
            CommandStep(argv=[NETWORKSETUP, "-setv6automatic", service], required=False),
        ],
    )


def clear_servers_command(service: str) -> PrivilegedCommand:
    return PrivilegedCommand(
        description=f"Clear DNS servers for '{service}'",
        steps=[CommandStep(argv=[NETWORKSETUP, "-setdnsservers", service, "empty"])],
    )


def resolver_zone_content(addresses: Sequence[ResolverAddress]) -> str:
    lines = [ZONE_FILE_HEADER]
    for address in addresses:
        lines.append(f"nameserver {address.host}")
        if address.port is not None:
            lines.append(f"port {address.port}")
    return "\n".join(lines) + "\n"


def zone_file_commands(addresses: Sequence[ResolverAddress]) -> list[PrivilegedCommand]:
    """Zone file steps, in order: create the directory, write the file, fix its permissions."""
    return [
        PrivilegedCommand(
            description=f"Create {RESOLVER_DIR}",
            steps=[CommandStep(argv=["/bin/mkdir", "-p", str(RESOLVER_DIR)])],
        ),
        PrivilegedCommand(
            description=f"Write {RESOLVER_ZONE_FILE}",
            steps=[
                CommandStep(
                    argv=["/usr/bin/tee", str(RESOLVER_ZONE_FILE)],
                    input=resolver_zone_content(addresses),
                )
            ],
        ),
        PrivilegedCommand(
            description=f"Set permissions on {RESOLVER_ZONE_FILE}",
            steps=[CommandStep(argv=["/bin/chmod", "644", str(RESOLVER_ZONE_FILE)])],
        ),
    ]


def remove_zone_file_command() -> PrivilegedCommand:
    return PrivilegedCommand(
        description=f"Remove {RESOLVER_ZONE_FILE}",
        steps=[CommandStep(argv=["/bin/rm", "-f", str(RESOLVER_ZONE_FILE)])],
    )


def flush_cache_command() -> PrivilegedCommand:
    return PrivilegedCommand(
        description="Flush DNS cache",
        steps=[CommandStep(argv=["/usr/bin/dscacheutil", "-flushcache"])],
    )


def restart_resolver_command() -> PrivilegedCommand:
    """HUP the resolver daemon, trying the lowercase name only if the first is absent.

    Neither process running is not an error.
    """
    return PrivilegedCommand(
        description="Restart mDNSResponder",
        steps=[
            CommandStep(
                argv=["/usr/bin/killall", "-HUP", "mDNSResponder"],
                fallback=["/usr/bin/killall", "-HUP", "mdnsresponder"],
                required=False,
            )
        ],
    )


def build_commands(
    addresses: Sequence[ResolverAddress], services: Sequence[str]
) -> list[PrivilegedCommand]:
    """Full ordered command list for applying `addresses` to `services`.

    The zone file steps come first and only when a non-default port is
    present; the per-service commands always use port-stripped hosts so
    applications that ignore /etc/resolver still resolve.
    """
    commands: list[PrivilegedCommand] = []
    if needs_zone_file(addresses):
        commands.extend(zone_file_commands(addresses))

    hosts = [a.host for a in addresses]
    commands.extend(set_servers_command(service, hosts) for service in services)
    return commands
