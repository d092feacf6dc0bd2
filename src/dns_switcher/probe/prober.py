"""Latency prober — ping one address per profile under a concurrency cap and rank them."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable

from dns_switcher.core.base import FAILED_RESPONSE_TIME, ProbeResult, Profile
from dns_switcher.probe.ping import parse_average, ping_command

logger = logging.getLogger(__name__)

# Extra seconds allowed on top of count * timeout before a ping is killed
_DEADLINE_SLACK = 2.0


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()


class LatencyProber:
    """Single-flight latency benchmark over a catalog of profiles.

    Only one run may be active: a second `test_all` while one is running
    returns [] immediately. `cancel()` stops the active run, kills its ping
    processes, and makes the awaiting `test_all` raise CancelledError, so
    partial results are never delivered.
    """

    def __init__(
        self,
        concurrency: int = 5,
        stagger: float = 0.05,
        count: int = 2,
        timeout: float = 1.0,
    ) -> None:
        self.concurrency = concurrency
        self.stagger = stagger
        self.count = count
        self.timeout = timeout
        self._active = False
        self._run: asyncio.Future[list[ProbeResult]] | None = None
        self._processes: set[asyncio.subprocess.Process] = set()

    @property
    def is_running(self) -> bool:
        return self._active

    async def test_all(self, profiles: Iterable[Profile]) -> list[ProbeResult]:
        """Probe every profile and return results ranked fastest first."""
        if self._active:
            logger.info("A probe run is already active, ignoring request")
            return []

        targets = [
            (profile.id, profile.name, profile.probe_host)
            for profile in profiles
            if profile.probe_host
        ]
        self._active = True
        run = asyncio.ensure_future(self._probe_all(targets))
        self._run = run
        try:
            results = await run
        finally:
            if self._run is run:
                self._run = None
                self._active = False

        # sorted() is stable: equal times, including every failure, keep input order
        return sorted(results, key=lambda r: r.response_time)

    def cancel(self) -> None:
        """Abort the active run, if any, and terminate in-flight pings."""
        if self._run is not None and not self._run.done():
            logger.info("Cancelling probe run")
            self._run.cancel()
        for proc in list(self._processes):
            _kill(proc)
        self._processes.clear()
        self._run = None
        self._active = False

    async def _probe_all(self, targets: list[tuple[str, str, str]]) -> list[ProbeResult]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def probe(index: int, target: tuple[str, str, str]) -> ProbeResult:
            # Stagger starts so the pings don't all hit the network stack at once
            await asyncio.sleep(index * self.stagger)
            async with semaphore:
                return await self._probe(*target)

        return list(await asyncio.gather(*(probe(i, t) for i, t in enumerate(targets))))

    async def _probe(self, identifier: str, name: str, host: str) -> ProbeResult:
        elapsed = await self.ping(host)
        if elapsed is None:
            logger.debug("Probe of %s (%s) failed", name, host)
            return ProbeResult(
                id=identifier, name=name, response_time=FAILED_RESPONSE_TIME, success=False
            )
        logger.debug("Probe of %s (%s): %.1f ms", name, host, elapsed)
        return ProbeResult(id=identifier, name=name, response_time=elapsed, success=True)

    async def ping(self, host: str) -> float | None:
        """Average round-trip time to `host` in ms, or None on any failure."""
        argv = ping_command(host, count=self.count, timeout=self.timeout)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.debug("Could not start %s: %s", argv[0], e)
            return None

        self._processes.add(proc)
        try:
            stdout, _ = await asyncio.wait_for(
                proc.communicate(), timeout=self.count * self.timeout + _DEADLINE_SLACK
            )
        except TimeoutError:
            logger.debug("ping %s timed out", host)
            _kill(proc)
            await proc.wait()
            return None
        except asyncio.CancelledError:
            _kill(proc)
            await asyncio.shield(proc.wait())
            raise
        finally:
            self._processes.discard(proc)
            _kill(proc)

        if proc.returncode != 0:
            return None
        return parse_average(stdout.decode(errors="replace"))
