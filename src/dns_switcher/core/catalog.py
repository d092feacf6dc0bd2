"""Profile catalog — built-in resolvers from catalog.yaml plus custom profiles from config."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from functools import lru_cache

import yaml

from dns_switcher.core.base import Profile, ProfileKind
from dns_switcher.core.config import CustomProfileConfig
from dns_switcher.core.paths import DATA_DIR

_CUSTOM_NAMESPACE = uuid.UUID("5b2f3c9e-7a41-4d8e-9f0c-2d6a1e8b4c70")


@lru_cache(maxsize=1)
def load_catalog() -> tuple[Profile, ...]:
    """Load predefined and geo profiles, predefined first."""
    path = DATA_DIR / "catalog.yaml"
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    profiles = [
        Profile(kind=ProfileKind.PREDEFINED, **entry) for entry in data["predefined"]
    ]
    profiles += [Profile(kind=ProfileKind.GEO, **entry) for entry in data["geo"]]
    return tuple(profiles)


def custom_profile_id(name: str) -> str:
    """Stable id for a custom profile that has none in config."""
    return str(uuid.uuid5(_CUSTOM_NAMESPACE, name))


def custom_profiles(entries: Iterable[CustomProfileConfig]) -> list[Profile]:
    now = datetime.now(UTC)
    return [
        Profile(
            id=entry.id or custom_profile_id(entry.name),
            name=entry.name,
            kind=ProfileKind.CUSTOM,
            servers=entry.servers,
            updated_at=now,
        )
        for entry in entries
    ]


def all_profiles(custom: Iterable[Profile] = ()) -> list[Profile]:
    """Every known profile: predefined, geo, then custom sorted by name."""
    return [*load_catalog(), *sorted(custom, key=lambda p: p.name.lower())]


def get_profile(profile_id: str, custom: Iterable[Profile] = ()) -> Profile | None:
    """Get a profile by id."""
    for profile in all_profiles(custom):
        if profile.id == profile_id:
            return profile
    return None
