"""Privileged command execution — sudo, osascript admin prompt, or direct when root."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import sys
from enum import StrEnum

from pydantic import BaseModel, Field

from dns_switcher.core.base import CommandFailed, PrivilegeDenied

logger = logging.getLogger(__name__)

# Fragments in stderr that mean the escalation itself was refused
_DENIED_MARKERS = (
    "(-128)",  # osascript: user pressed Cancel
    "User canceled",
    "incorrect password",
    "a password is required",
    "Sorry, try again",
    "not in the sudoers file",
)


class EscalationMethod(StrEnum):
    AUTO = "auto"
    DIRECT = "direct"
    SUDO = "sudo"
    OSASCRIPT = "osascript"


class CommandStep(BaseModel):
    """One OS command. `input` is fed to its stdin; optional steps never fail the command.

    `fallback` runs only when `argv` exits non-zero.
    """

    argv: list[str] = Field(min_length=1)
    input: str | None = None
    required: bool = True
    fallback: list[str] | None = None

    def render(self) -> str:
        line = shlex.join(self.argv)
        if self.input is not None:
            line = f"printf '%s' {shlex.quote(self.input)} | {line}"
        if self.fallback:
            line = f"{line} || {shlex.join(self.fallback)}"
        return line


class PrivilegedCommand(BaseModel):
    """A group of steps executed under a single privilege escalation."""

    description: str
    steps: list[CommandStep] = Field(min_length=1)


def render_script(command: PrivilegedCommand) -> str:
    """Render a POSIX sh script; every argument is shell-quoted."""
    lines = []
    for step in command.steps:
        fallback = "exit 1" if step.required else "true"
        lines.append(f"{step.render()} || {fallback}")
    return "; ".join(lines)


def _applescript_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class PrivilegedExecutor:
    """Run PrivilegedCommands with elevated privileges.

    `run()` reports success as a boolean and never raises: a refused prompt,
    a failing step, a missing binary and a timeout all come back as False,
    with the detail logged.
    """

    def __init__(
        self,
        method: EscalationMethod = EscalationMethod.AUTO,
        prompt: str = "dns-switcher needs to modify network settings",
        timeout: float = 120.0,
    ) -> None:
        self.method = method
        self.prompt = prompt
        self.timeout = timeout

    def resolve_method(self) -> EscalationMethod:
        if self.method is not EscalationMethod.AUTO:
            return self.method
        if os.geteuid() == 0:
            return EscalationMethod.DIRECT
        if sys.stdin is not None and sys.stdin.isatty():
            return EscalationMethod.SUDO
        return EscalationMethod.OSASCRIPT

    def build_argv(self, script: str, method: EscalationMethod) -> list[str]:
        if method is EscalationMethod.DIRECT:
            return ["/bin/sh", "-c", script]
        if method is EscalationMethod.SUDO:
            return ["sudo", "/bin/sh", "-c", script]
        if method is EscalationMethod.OSASCRIPT:
            source = (
                f"do shell script {_applescript_string(script)} "
                f"with administrator privileges with prompt {_applescript_string(self.prompt)}"
            )
            return ["osascript", "-e", source]
        raise ValueError(f"Unresolved escalation method: {method}")

    async def run(self, command: PrivilegedCommand) -> bool:
        method = self.resolve_method()
        argv = self.build_argv(render_script(command), method)
        logger.debug("Running %r via %s", command.description, method.value)

        try:
            await self._execute(command, argv, method)
        except PrivilegeDenied as e:
            logger.warning("%s: %s", command.description, e)
            return False
        except CommandFailed as e:
            logger.error("%s", e)
            return False

        logger.debug("%r succeeded", command.description)
        return True

    async def _execute(
        self, command: PrivilegedCommand, argv: list[str], method: EscalationMethod
    ) -> None:
        # sudo needs the caller's terminal for its password / Touch ID prompt
        stdin = None if method is EscalationMethod.SUDO else asyncio.subprocess.DEVNULL
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandFailed(f"{command.description} ({argv[0]}: {e})") from e

        try:
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandFailed(
                f"{command.description} (timed out after {self.timeout:g}s)"
            ) from None

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            if method is not EscalationMethod.DIRECT and any(
                marker in detail for marker in _DENIED_MARKERS
            ):
                raise PrivilegeDenied(method.value, detail)
            suffix = f": {detail}" if detail else ""
            raise CommandFailed(
                f"{command.description} (exit {proc.returncode}){suffix}"
            )
