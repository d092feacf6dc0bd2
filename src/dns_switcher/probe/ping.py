"""ping invocation and output parsing."""

from __future__ import annotations

import ipaddress
import platform


def _is_ipv6(host: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(host), ipaddress.IPv6Address)
    except ValueError:
        return False


def ping_command(host: str, count: int = 2, timeout: float = 1.0) -> list[str]:
    """argv for `count` echo requests with a per-reply timeout of `timeout` seconds."""
    wait = str(max(1, round(timeout)))
    if platform.system() == "Darwin":
        if _is_ipv6(host):
            # ping6 has no overall timeout flag; the prober's deadline bounds it
            return ["/sbin/ping6", "-c", str(count), host]
        return ["/sbin/ping", "-c", str(count), "-t", wait, host]

    argv = ["ping", "-c", str(count), "-W", wait]
    if _is_ipv6(host):
        argv.append("-6")
    return [*argv, host]


def parse_average(output: str) -> float | None:
    """Average round-trip time (ms) from the `min/avg/max` summary line."""
    for line in output.splitlines():
        if "min/avg/max" not in line:
            continue
        _, sep, stats = line.partition("=")
        if not sep:
            continue
        values = stats.strip().split("/")
        if len(values) < 2:
            continue
        try:
            return float(values[1].strip())
        except ValueError:
            return None
    return None
