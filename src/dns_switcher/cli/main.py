"""CLI entry point — the `dnsswitch` command."""

from __future__ import annotations

import asyncio
import contextlib
import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dns_switcher.core.base import FAILED_RESPONSE_TIME, Profile, ProfileKind
from dns_switcher.core.catalog import all_profiles, custom_profiles, get_profile
from dns_switcher.core.config import Settings, load_settings
from dns_switcher.core.log import setup_logging
from dns_switcher.core.privilege import EscalationMethod, PrivilegedExecutor, render_script
from dns_switcher.probe.prober import LatencyProber
from dns_switcher.resolver.interfaces import describe_services, discover_active_services
from dns_switcher.resolver.status import (
    get_service_dns_servers,
    get_system_dns_servers,
    match_profile,
)
from dns_switcher.resolver.switcher import DnsSwitcher

console = Console()

KIND_STYLES = {
    ProfileKind.PREDEFINED: "bold",
    ProfileKind.GEO: "cyan",
    ProfileKind.CUSTOM: "magenta",
}


def _run_async(coro: Any) -> Any:
    """Run an async coroutine from sync Click commands."""
    return asyncio.run(coro)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _profiles(ctx: click.Context) -> list[Profile]:
    return all_profiles(custom_profiles(_settings(ctx).custom))


def _switcher(ctx: click.Context) -> DnsSwitcher:
    settings = _settings(ctx)
    executor = PrivilegedExecutor(
        method=settings.escalation,
        prompt=settings.prompt,
        timeout=settings.command_timeout,
    )
    return DnsSwitcher(executor)


def _print_plan(switcher: DnsSwitcher, servers: list[str]) -> None:
    services = discover_active_services()
    if not services:
        console.print("[red]No network services found.[/red]")
        raise SystemExit(1)

    console.print(
        "[yellow]Dry-run mode — no changes will be made. Drop --dry-run to apply.[/yellow]\n"
    )
    for command in switcher.plan(servers, services):
        console.print(f"[bold]{escape(command.description)}[/bold]")
        console.print(
            f"  {render_script(command)}",
            style="dim",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


def _report(ok: bool, success: str, failure: str) -> None:
    if ok:
        console.print(f"[green]{success}[/green]")
    else:
        console.print(f"[red]{failure}[/red] [dim](run with -v for details)[/dim]")
        sys.exit(1)


@click.group()
@click.version_option(package_name="dns-switcher")
@click.option("--verbose", "-v", is_flag=True, help="Show diagnostic logging.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/dns-switcher/config.toml).",
)
@click.option(
    "--escalation",
    type=click.Choice([m.value for m in EscalationMethod]),
    default=None,
    help="How to obtain admin privileges.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_path: Path | None,
    escalation: str | None,
) -> None:
    """Switch DNS resolver profiles and benchmark resolvers."""
    setup_logging(verbose)
    try:
        settings = load_settings(config_path)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1) from e
    if escalation:
        settings.escalation = EscalationMethod(escalation)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command("list")
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def list_profiles(ctx: click.Context, output_format: str) -> None:
    """List every known profile."""
    profiles = _profiles(ctx)

    if output_format == "json":
        click.echo(json.dumps([p.model_dump(mode="json") for p in profiles], indent=2))
        return

    table = Table(title="DNS Profiles")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Servers")
    for profile in profiles:
        style = KIND_STYLES.get(profile.kind, "")
        table.add_row(
            escape(profile.id),
            escape(profile.name),
            f"[{style}]{profile.kind.value}[/{style}]",
            escape(", ".join(profile.servers)),
        )
    console.print(table)


@cli.command()
@click.argument("profile_id")
@click.option("--dry-run", is_flag=True, help="Show the commands without running them.")
@click.pass_context
def use(ctx: click.Context, profile_id: str, dry_run: bool) -> None:
    """Activate a profile by id (see `dnsswitch list`)."""
    profile = get_profile(profile_id, custom_profiles(_settings(ctx).custom))
    if profile is None:
        console.print(f"[red]Unknown profile: {escape(profile_id)}[/red]")
        raise SystemExit(1)

    switcher = _switcher(ctx)
    if dry_run:
        _print_plan(switcher, profile.servers)
        return

    result = _run_async(switcher.activate(profile))
    name = escape(profile.name)
    _report(
        result.success,
        f"Now using {name} ({escape(', '.join(profile.servers))}).",
        f"Could not switch to {name}.",
    )


@cli.command("set")
@click.argument("servers", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Show the commands without running them.")
@click.pass_context
def set_servers(ctx: click.Context, servers: tuple[str, ...], dry_run: bool) -> None:
    """Use ad-hoc resolvers, e.g. `dnsswitch set 127.0.0.1:5353 9.9.9.9`."""
    switcher = _switcher(ctx)
    if dry_run:
        _print_plan(switcher, list(servers))
        return

    ok = _run_async(switcher.apply(list(servers)))
    _report(ok, f"DNS set to {escape(' '.join(servers))}.", "Could not set DNS servers.")


@cli.command()
@click.pass_context
def off(ctx: click.Context) -> None:
    """Remove the DNS override and go back to DHCP-provided resolvers."""
    result = _run_async(_switcher(ctx).deactivate())
    _report(result.success, "DNS override removed.", "Could not remove the DNS override.")


@cli.command()
@click.pass_context
def flush(ctx: click.Context) -> None:
    """Flush the DNS cache and restart mDNSResponder."""
    ok = _run_async(_switcher(ctx).flush_cache())
    _report(ok, "DNS cache flushed.", "Could not flush the DNS cache.")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the resolvers in use and which profile they belong to."""
    services = discover_active_services()
    configured: list[str] = []
    for service in services:
        configured.extend(get_service_dns_servers(service))
    configured = list(dict.fromkeys(configured))

    system = get_system_dns_servers()
    profile = match_profile(configured, _profiles(ctx))

    if profile is not None:
        headline = (
            f"[green bold]{escape(profile.name)}[/green bold] [dim]({escape(profile.id)})[/dim]"
        )
    elif configured:
        headline = "[yellow]Manual resolvers (no matching profile)[/yellow]"
    else:
        headline = "[dim]No DNS override[/dim]"

    lines = [headline, ""]
    lines.append(f"Services: {escape(', '.join(services) or '-')}")
    lines.append(f"Configured: {escape(', '.join(configured) or '-')}")
    lines.append(f"System resolvers: {escape(', '.join(system) or '-')}")
    console.print(Panel("\n".join(lines), title="[bold]DNS Status[/bold]", style="blue"))


@cli.command()
def services() -> None:
    """Show network services and which ones receive DNS changes."""
    table = Table(title="Network Services")
    table.add_column("Service", style="bold")
    table.add_column("Device")
    table.add_column("Live", justify="center")

    for service in describe_services():
        table.add_row(
            escape(service.name),
            escape(service.device or "-"),
            "[green]yes[/green]" if service.live else "[dim]no[/dim]",
        )
    console.print(table)
    console.print(f"Targets: {escape(', '.join(discover_active_services()) or '-')}")


@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Show only the N fastest.")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in ProfileKind]),
    multiple=True,
    help="Only benchmark these profile kinds (repeatable).",
)
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def bench(
    ctx: click.Context, limit: int | None, kind: tuple[str, ...], output_format: str
) -> None:
    """Ping every profile's first resolver and rank them by latency."""
    probe = _settings(ctx).probe
    prober = LatencyProber(
        concurrency=probe.concurrency,
        stagger=probe.stagger,
        count=probe.count,
        timeout=probe.timeout,
    )
    profiles = [p for p in _profiles(ctx) if not kind or p.kind.value in kind]

    spinner = (
        console.status(f"Probing {len(profiles)} resolvers...")
        if output_format == "rich"
        else contextlib.nullcontext()
    )
    with spinner:
        try:
            results = _run_async(prober.test_all(profiles))
        except KeyboardInterrupt:
            prober.cancel()
            console.print("[yellow]Benchmark cancelled.[/yellow]")
            raise SystemExit(130) from None

    if limit is not None:
        results = results[:limit]

    if output_format == "json":
        click.echo(json.dumps([r.model_dump() for r in results], indent=2))
        return

    table = Table(title="Resolver Latency")
    table.add_column("#", justify="right")
    table.add_column("Profile", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Latency", justify="right")
    for rank, result in enumerate(results, 1):
        if result.success:
            latency = f"[green]{result.response_time:.1f} ms[/green]"
        else:
            latency = f"[red]failed ({FAILED_RESPONSE_TIME:.0f})[/red]"
        table.add_row(str(rank), escape(result.name), escape(result.id), latency)
    console.print(table)
