"""DNS switcher — apply, clear and flush resolver settings on the active services.

Every public operation reports a plain boolean. Failures are logged with
enough detail to tell which command and which service broke, but are never
raised to the caller.

Changes are not rolled back: when one service fails after others were
already updated, the operation reports False and the machine keeps the
mixed state. Callers must not run two operations at once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from dns_switcher.core.base import (
    CommandFailed,
    DiscoveryFailed,
    NoNetworkServices,
    Profile,
    ResolverAddress,
    SwitchResult,
    parse_addresses,
)
from dns_switcher.core.privilege import PrivilegedCommand, PrivilegedExecutor
from dns_switcher.resolver.commands import (
    build_commands,
    clear_servers_command,
    flush_cache_command,
    needs_zone_file,
    remove_zone_file_command,
    restart_resolver_command,
    set_servers_command,
    zone_file_commands,
)
from dns_switcher.resolver.interfaces import discover_active_services

logger = logging.getLogger(__name__)


class DnsSwitcher:
    """Stateless service applying resolver profiles through a PrivilegedExecutor."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        discover: Callable[[], list[str]] = discover_active_services,
    ) -> None:
        self.executor = executor
        self.discover = discover

    async def _services(self) -> list[str]:
        logger.debug("Discovering network services")
        try:
            services = await asyncio.to_thread(self.discover)
        except Exception as e:
            raise DiscoveryFailed(f"{type(e).__name__}: {e}") from e
        if not services:
            raise NoNetworkServices()
        return services

    async def _run_sequence(self, commands: Sequence[PrivilegedCommand]) -> None:
        """Run commands one by one; the first failure stops the sequence."""
        for command in commands:
            if not await self.executor.run(command):
                raise CommandFailed(command.description)

    async def _run_per_service(self, commands: dict[str, PrivilegedCommand]) -> bool:
        """Run one command per service concurrently; True only if all succeed."""
        outcomes = await asyncio.gather(
            *(self.executor.run(command) for command in commands.values())
        )
        failed = [name for name, ok in zip(commands, outcomes, strict=True) if not ok]
        if failed:
            logger.error(
                "DNS change failed on %d of %d services: %s",
                len(failed),
                len(commands),
                ", ".join(failed),
            )
            return False
        return True

    def plan(
        self, servers: Sequence[str | ResolverAddress], services: Sequence[str]
    ) -> list[PrivilegedCommand]:
        """Commands `apply` would run for `servers` on `services`, without running them."""
        return build_commands(parse_addresses(servers), services)

    async def apply(self, servers: Sequence[str | ResolverAddress]) -> bool:
        """Make `servers` the resolver list of every active service."""
        try:
            addresses = parse_addresses(servers)
        except ValueError as e:
            logger.error("Invalid resolver address: %s", e)
            return False
        if not addresses:
            logger.error("No resolver addresses given")
            return False

        try:
            services = await self._services()
            logger.info(
                "Applying %s to %s",
                " ".join(str(a) for a in addresses),
                ", ".join(services),
            )
            if needs_zone_file(addresses):
                await self._run_sequence(zone_file_commands(addresses))

            hosts = [a.host for a in addresses]
            ok = await self._run_per_service(
                {service: set_servers_command(service, hosts) for service in services}
            )
        except (NoNetworkServices, DiscoveryFailed) as e:
            logger.error("%s", e)
            return False
        except CommandFailed as e:
            logger.error("Aborting DNS change: %s", e)
            return False

        logger.info("DNS change %s", "succeeded" if ok else "failed")
        return ok

    async def activate(self, profile: Profile) -> SwitchResult:
        ok = await self.apply(profile.servers)
        return SwitchResult(success=ok, active_profile_id=profile.id if ok else None)

    async def disable(self) -> bool:
        """Remove any zone file, then reset every active service to DHCP-provided DNS."""
        try:
            services = await self._services()
        except (NoNetworkServices, DiscoveryFailed) as e:
            logger.error("%s", e)
            return False

        if not await self.executor.run(remove_zone_file_command()):
            logger.warning("Could not remove resolver zone file, continuing")

        ok = await self._run_per_service(
            {service: clear_servers_command(service) for service in services}
        )
        logger.info("DNS override removal %s", "succeeded" if ok else "failed")
        return ok

    async def deactivate(self) -> SwitchResult:
        ok = await self.disable()
        return SwitchResult(success=ok, active_profile_id=None)

    async def flush_cache(self) -> bool:
        """Flush the resolver cache, then HUP mDNSResponder if the flush worked."""
        if not await self.executor.run(flush_cache_command()):
            return False
        if not await self.executor.run(restart_resolver_command()):
            logger.warning("mDNSResponder restart failed after cache flush")
        return True
