"""Configuration loading — reads optional TOML config file."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from dns_switcher.core.privilege import EscalationMethod

DEFAULT_CONFIG_PATHS = [
    Path.home() / ".config" / "dns-switcher" / "config.toml",
    Path("dnsswitch.toml"),
]

DEFAULT_PROMPT = "dns-switcher needs to modify network settings"


class ProbeSettings(BaseModel):
    concurrency: int = Field(default=5, ge=1)
    stagger: float = Field(default=0.05, ge=0)
    count: int = Field(default=2, ge=1)
    timeout: float = Field(default=1.0, gt=0)


class CustomProfileConfig(BaseModel):
    """A user-defined resolver profile from the `[[custom]]` config tables."""

    name: str
    servers: list[str] = Field(min_length=1)
    id: str | None = None


class Settings(BaseModel):
    escalation: EscalationMethod = EscalationMethod.AUTO
    prompt: str = DEFAULT_PROMPT
    command_timeout: float = Field(default=120.0, gt=0)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    custom: list[CustomProfileConfig] = Field(default_factory=list)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Searches default paths if no explicit path is given.
    Returns an empty dict if no config file is found.
    """
    paths = [path] if path is not None else DEFAULT_CONFIG_PATHS

    for p in paths:
        if p.exists():
            with open(p, "rb") as f:
                return tomllib.load(f)

    return {}


def load_settings(path: Path | None = None) -> Settings:
    """Build validated settings: DNSSWITCH_* env vars → config.toml → defaults.

    Raises ValueError when the config file does not validate.
    """
    data = load_config(path)

    escalation = os.environ.get("DNSSWITCH_ESCALATION")
    if escalation:
        data["escalation"] = escalation.lower()
    concurrency = os.environ.get("DNSSWITCH_PROBE_CONCURRENCY")
    if concurrency:
        probe = data.setdefault("probe", {})
        # a non-table `probe` is left for validation to reject
        if isinstance(probe, dict):
            probe["concurrency"] = concurrency

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
