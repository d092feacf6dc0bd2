"""Shared test fixtures."""

from __future__ import annotations

import logging

import pytest

from dns_switcher.core.base import Profile, ProfileKind
from dns_switcher.core.privilege import PrivilegedCommand


class RecordingExecutor:
    """Stands in for PrivilegedExecutor: records commands instead of running them.

    Any command whose description contains one of `fail` reports failure.
    """

    def __init__(self, fail: tuple[str, ...] = ()) -> None:
        self.commands: list[PrivilegedCommand] = []
        self.fail = fail

    async def run(self, command: PrivilegedCommand) -> bool:
        self.commands.append(command)
        return not any(marker in command.description for marker in self.fail)

    @property
    def descriptions(self) -> list[str]:
        return [c.description for c in self.commands]


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def failing_executor():
    """Factory for executors that fail commands matching the given markers."""

    def factory(*fail: str) -> RecordingExecutor:
        return RecordingExecutor(fail=fail)

    return factory


@pytest.fixture
def make_profile():
    """Factory for custom profiles with a single server each by default."""

    def factory(identifier: str, *servers: str, name: str | None = None) -> Profile:
        return Profile(
            id=identifier,
            name=name or identifier.title(),
            kind=ProfileKind.CUSTOM,
            servers=list(servers) or [f"10.0.0.{len(identifier)}"],
        )

    return factory


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handlers/levels installed by CLI invocations."""
    yield
    logger = logging.getLogger("dns_switcher")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
