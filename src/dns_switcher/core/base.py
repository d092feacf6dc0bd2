"""Core data model — resolver addresses, profiles, probe results and errors."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DNS_PORT = 53

# Sentinel round-trip time for a probe that failed or timed out
FAILED_RESPONSE_TIME = 999.0


class SwitcherError(Exception):
    """Base class for failures inside a switch operation."""


class NoNetworkServices(SwitcherError):
    """Raised when no network service is configured at all."""

    def __init__(self) -> None:
        super().__init__("No network services found")


class DiscoveryFailed(SwitcherError):
    """Raised when network service discovery itself errors out."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Network service discovery failed: {detail}")


class CommandFailed(SwitcherError):
    """Raised when a privileged command in a sequence fails."""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Privileged command failed: {step}")


class PrivilegeDenied(SwitcherError):
    """Raised when the privilege prompt is refused or dismissed."""

    def __init__(self, method: str, detail: str = "") -> None:
        self.method = method
        self.detail = detail
        message = f"Privilege escalation via {method} was denied"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ResolverAddress(BaseModel):
    """A single resolver endpoint. `port` is None for the protocol default."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int | None = Field(default=None, ge=1, le=65535)

    @classmethod
    def parse(cls, text: str) -> ResolverAddress:
        """Parse `host`, `host:port` or `[v6]:port`.

        A suffix that is not numeric is never treated as a port: the text is
        kept as a bare address instead.
        """
        value = text.strip()
        if not value:
            raise ValueError("Empty resolver address")

        if value.startswith("[") and "]" in value:
            closing = value.index("]")
            host = value[1:closing]
            remainder = value[closing + 1 :]
            if remainder.startswith(":"):
                port = _parse_port(remainder[1:])
                if port is not None:
                    return cls(host=host, port=port)
            return cls(host=host)

        parts = value.split(":")
        if len(parts) == 2:
            port = _parse_port(parts[1])
            if port is not None and parts[0]:
                return cls(host=parts[0], port=port)

        return cls(host=value)

    @property
    def has_custom_port(self) -> bool:
        return self.port is not None and self.port != DEFAULT_DNS_PORT

    def __str__(self) -> str:
        if self.port is None:
            return self.host
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def _parse_port(text: str) -> int | None:
    if not (text.isascii() and text.isdigit()):
        return None
    port = int(text)
    return port if 1 <= port <= 65535 else None


def parse_addresses(entries: Iterable[str | ResolverAddress]) -> list[ResolverAddress]:
    """Parse resolver entries, splitting comma-separated values and dropping blanks."""
    addresses: list[ResolverAddress] = []
    for entry in entries:
        if isinstance(entry, ResolverAddress):
            addresses.append(entry)
            continue
        for part in entry.split(","):
            if part.strip():
                addresses.append(ResolverAddress.parse(part))
    return addresses


class ProfileKind(StrEnum):
    PREDEFINED = "predefined"
    GEO = "geo"
    CUSTOM = "custom"


class Profile(BaseModel):
    """A named group of resolver addresses that can be made active."""

    id: str
    name: str
    kind: ProfileKind
    servers: list[str] = Field(min_length=1)
    updated_at: datetime | None = None  # custom profiles only

    @property
    def addresses(self) -> list[ResolverAddress]:
        return parse_addresses(self.servers)

    @property
    def probe_host(self) -> str | None:
        """First configured host with any port stripped."""
        addresses = self.addresses
        return addresses[0].host if addresses else None


class NetworkService(BaseModel):
    """A configured network service and whether it currently carries traffic."""

    name: str
    device: str | None = None
    live: bool = False


class ProbeResult(BaseModel):
    """Latency measurement for one profile."""

    id: str
    name: str
    response_time: float  # milliseconds, FAILED_RESPONSE_TIME on failure
    success: bool


class SwitchResult(BaseModel):
    """Outcome of a profile switch. The caller persists `active_profile_id` on success."""

    success: bool
    active_profile_id: str | None = None
