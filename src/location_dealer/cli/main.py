"""CLI entry point for the `location-dealer` command."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from location_dealer.core.config import get_default_accuracy, get_ip_settings, load_config
from location_dealer.core.dealer import LocationDealer
from location_dealer.core.errors import DealerError, NeedsPermission
from location_dealer.core.models import ACCURACY_PRESETS, Location, LocationAccuracy
from location_dealer.core.notifications import LoggingNotificationSink
from location_dealer.core.permit import (
    PermissionOutcome,
    RawStatus,
    SettingsTarget,
    classify,
    guidance_for,
)
from location_dealer.core.provider import LocationProvider
from location_dealer.providers.ip import IPLocationProvider
from location_dealer.providers.static import StaticLocationProvider

console = Console()

PERMIT_COLORS = {
    PermissionOutcome.ALLOWED: "green",
    PermissionOutcome.NOT_DETERMINED: "yellow",
    PermissionOutcome.DENIED_FOR_THE_APP: "red",
    PermissionOutcome.DENIED_FOR_ALL_APPS: "red",
    PermissionOutcome.RESTRICTED: "red bold",
    PermissionOutcome.DENIED_FOR_ALL_AND_RESTRICTED: "red bold",
}


def _run_async(coro: Any) -> Any:
    """Run an async coroutine from sync Click commands."""
    return asyncio.run(coro)


def _parse_static(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> Location | None:
    if value is None:
        return None
    try:
        lat, lon = (float(part) for part in value.split(","))
    except ValueError:
        raise click.BadParameter("expected LAT,LON (e.g. 55.03,82.92)") from None
    return Location(latitude=lat, longitude=lon)


def _parse_accuracy(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> LocationAccuracy | None:
    if value is None:
        return None
    return LocationAccuracy.from_name(value)


def _make_provider(
    static: Location | None, repeat: int = 1, interval: float | None = None
) -> LocationProvider:
    if static is not None:
        return StaticLocationProvider(static, repeat=repeat)
    settings = get_ip_settings()
    if interval is not None:
        settings["interval"] = interval
    return IPLocationProvider(**settings)


def _render_permit(service_enabled: bool, status: RawStatus, permit: PermissionOutcome) -> None:
    guidance = guidance_for(permit)
    color = PERMIT_COLORS.get(permit, "")
    console.print(f"\n[bold]Permit:[/bold] [{color}]{permit}[/{color}]")
    console.print(f"  Raw status:       {status}")
    console.print(f"  Service enabled:  {'yes' if service_enabled else 'no'}")
    console.print(f"  {guidance.summary}")
    if guidance.settings_target != SettingsTarget.NONE:
        console.print(f"  [dim]Where to fix:[/dim] {guidance.settings_target}")


def _render_location(location: Location) -> None:
    table = Table()
    table.add_column("Latitude", style="bold")
    table.add_column("Longitude", style="bold")
    table.add_column("Rounded", style="dim")
    table.add_column("Accuracy (m)")
    table.add_row(
        str(location.latitude),
        str(location.longitude),
        f"{location.latitude_hundredths}, {location.longitude_hundredths}",
        "-" if location.horizontal_accuracy is None else str(location.horizontal_accuracy),
    )
    console.print(table)


@click.group()
@click.version_option(package_name="location-dealer")
@click.option("--verbose", "-v", is_flag=True, help="Log dealer state transitions.")
def cli(verbose: bool) -> None:
    """location-dealer: classify location permits and request locations."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@cli.command()
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in RawStatus]),
    required=True,
    help="Raw authorization status reported by the platform.",
)
@click.option("--service-disabled", is_flag=True, help="Location services are off system-wide.")
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
def permit(status: str, service_disabled: bool, output_format: str) -> None:
    """Classify a raw status into a permission outcome."""
    raw = RawStatus(status)
    outcome = classify(not service_disabled, raw)

    if output_format == "json":
        click.echo(json.dumps(guidance_for(outcome).model_dump(mode="json"), indent=2))
        return
    _render_permit(not service_disabled, raw, outcome)


@cli.command()
def permits() -> None:
    """Show the full permit decision table with guidance."""
    table = Table(title="Permit decision table")
    table.add_column("Raw status", style="bold")
    table.add_column("Service")
    table.add_column("Permit")
    table.add_column("Guidance", style="dim")

    for status in RawStatus:
        for enabled in (True, False):
            outcome = classify(enabled, status)
            color = PERMIT_COLORS.get(outcome, "")
            table.add_row(
                status.value,
                "on" if enabled else "off",
                f"[{color}]{outcome}[/{color}]",
                guidance_for(outcome).summary,
            )
    console.print(table)


@cli.command()
@click.option(
    "--accuracy",
    "-a",
    type=click.Choice(list(ACCURACY_PRESETS)),
    callback=_parse_accuracy,
    default=None,
    help="Desired accuracy preset (defaults to config).",
)
@click.option(
    "--static",
    callback=_parse_static,
    default=None,
    metavar="LAT,LON",
    help="Use a fixed location instead of IP geolocation.",
)
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
def locate(
    accuracy: LocationAccuracy | None, static: Location | None, output_format: str
) -> None:
    """Request the current location once."""
    config = load_config()
    provider = _make_provider(static)

    async def _run() -> Location:
        dealer = LocationDealer(
            provider,
            notifications=LoggingNotificationSink(logging.DEBUG),
            default_accuracy=accuracy or get_default_accuracy(config),
        )
        try:
            if dealer.permit() == PermissionOutcome.NOT_DETERMINED:
                await dealer.request_authorization()
            return await dealer.request_current_location(accuracy)
        finally:
            dealer.reset()

    try:
        location = _run_async(_run())
    except NeedsPermission as e:
        console.print(f"[red]{e}[/red]")
        console.print(f"  {guidance_for(e.permit).summary}")
        sys.exit(1)
    except DealerError as e:
        console.print(f"[red]Location request failed: {e}[/red]")
        sys.exit(1)

    if output_format == "json":
        click.echo(location.model_dump_json(indent=2))
        return
    console.print(Panel(f"[bold]{location}[/bold]", style="blue"))
    _render_location(location)


@cli.command()
@click.option("--count", "-n", default=3, help="Number of updates to receive before stopping.")
@click.option("--interval", type=float, default=None, help="Seconds between lookups.")
@click.option(
    "--static",
    callback=_parse_static,
    default=None,
    metavar="LAT,LON",
    help="Repeat a fixed location instead of IP geolocation.",
)
def watch(count: int, interval: float | None, static: Location | None) -> None:
    """Follow location updates."""
    provider = _make_provider(static, repeat=count, interval=interval)

    async def _run() -> int:
        done = asyncio.Event()
        received: list[Location] = []
        failures: list[DealerError] = []

        def sink(location: Location) -> None:
            if done.is_set():
                return
            received.append(location)
            console.print(f"  [{len(received)}/{count}] {location}")
            if len(received) >= count:
                done.set()

        def on_error(error: DealerError) -> None:
            console.print(f"  [yellow]{error}[/yellow]")
            failures.append(error)
            if isinstance(error, NeedsPermission) or len(failures) >= count:
                done.set()

        dealer = LocationDealer(provider, notifications=LoggingNotificationSink(logging.DEBUG))
        dealer.start_updating_location(sink, on_error=on_error)
        try:
            await done.wait()
        finally:
            dealer.stop_updating_location()
            dealer.reset()
        return len(received)

    console.print(Panel("[bold]Location updates[/bold]", style="blue"))
    received = _run_async(_run())
    if received < count:
        sys.exit(1)
