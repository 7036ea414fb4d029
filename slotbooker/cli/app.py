"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Dict, List, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.table import Table

from ..adapters.api_backend import ApiBookingBackend
from ..adapters.mock_backend import MockBookingBackend
from ..adapters.payloads import time_slot_to_payload
from ..adapters.session import ApiSession
from ..config import TOKEN_ENV_VAR, AppConfig, get_default_config_path
from ..domain.exceptions import BookingConflictError, BookingError
from ..domain.models import (
    WEEKDAY_NAMES,
    Service,
    SlotSettings,
    StaffMember,
    TimeSlot,
    sunday_based_weekday,
)
from ..logging_config import configure_logging
from ..services.booking import BookingBackendProtocol, BookingService, build_booking_request

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="slotbooker",
    help="Browse appointment availability and book services",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the built-in sample business instead of the API.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """
    Load the configuration, falling back to defaults in mock mode.
    """
    config_path = config_file or get_default_config_path()

    if config_file is None and not config_path.exists() and mock:
        logger.debug("No config file found, using defaults for mock mode")
        return AppConfig(backend="mock")

    return AppConfig.load_from_yaml(config_path)


def _build_backend(config: AppConfig, mock: bool) -> Tuple[BookingBackendProtocol, SlotSettings]:
    """
    Create the configured backend and the settings it runs with.

    The mock backend uses the settings stored with its sample business unless
    the config file sets its own.
    """
    settings = config.settings.to_slot_settings()

    if mock or config.backend == "mock":
        configured = "settings" in config.model_fields_set
        backend = MockBookingBackend(config.mock_data_file, settings=settings if configured else None)
        settings = backend.settings
        if not backend.appointments:
            backend.generate_sample_appointments(
                start=pendulum.today(settings.timezone).subtract(days=7),
                days=config.booking_days + 7,
                now=pendulum.now(settings.timezone),
            )
        return backend, settings

    session = ApiSession(
        base_url=config.api.base_url,
        token=config.api.resolve_token(),
        timeout=config.api.timeout_seconds,
    )
    if not session.is_authenticated:
        logger.warning(
            "No API token configured; set api.token or %s if requests are rejected", TOKEN_ENV_VAR
        )
    backend = ApiBookingBackend(
        session=session,
        timezone=settings.timezone,
        buffer_minutes=settings.effective_buffer_time,
    )
    return backend, settings


def _build_service(config: AppConfig, mock: bool) -> BookingService:
    """Wire the configured backend into a booking service."""
    backend, settings = _build_backend(config, mock)
    return BookingService(backend=backend, settings=settings)


def _parse_date(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.today(tz)
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        console.print(f"[red]Error parsing date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _setup(config_file: Optional[Path], mock: bool, verbose: bool) -> tuple[AppConfig, BookingService]:
    configure_logging(verbose)
    config = _load_config(config_file, mock)
    return config, _build_service(config, mock)


def _slots_table(title: str, slots: List[TimeSlot], staff_names: Dict[str, str]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Staff", style="bold yellow")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Status")

    for slot in slots:
        status = "[green]open[/green]" if slot.is_available else "[red]booked[/red]"
        table.add_row(
            staff_names.get(slot.staff_id, slot.staff_id),
            slot.start_time.format("HH:mm"),
            slot.end_time.format("HH:mm"),
            status,
        )

    return table


def _find_service(services: List[Service], service_id: str) -> Service:
    for service in services:
        if service.id == service_id:
            return service
    raise BookingError(f"Unknown or inactive service: {service_id}")


@app.command()
def slots(
    service_id: Annotated[str, typer.Argument(help="Service to book, e.g. service-1")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to search (YYYY-MM-DD), defaults to today")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list slots that are already booked.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the slots as JSON instead of a table.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List bookable slots for a service on one day.

    Examples:

        slotbooker slots service-1 --mock

        slotbooker slots service-3 --date 2024-11-26 --all

        slotbooker slots service-1 --date 2024-11-26 --json
    """
    try:
        _, service = _setup(config_file, mock, verbose)
        tz = service.settings.timezone
        day = _parse_date(date, tz)

        async def run():
            staff = await service.list_staff(active_only=False)
            found = await service.find_slots(
                service_id, day, now=pendulum.now(tz), available_only=not show_all
            )
            return staff, found

        staff, found = asyncio.run(run())
        staff_names = {member.id: member.name for member in staff}

        if as_json:
            console.print_json(data=[time_slot_to_payload(slot) for slot in found])
            return

        console.print()
        if not found:
            label = "slots" if show_all else "open slots"
            console.print(
                f"[yellow]No {label} for {service_id} on {day.format('YYYY-MM-DD')}.[/yellow]\n"
                "Try another day."
            )
            return

        weekday = WEEKDAY_NAMES[sunday_based_weekday(day)]
        console.print(_slots_table(f"{service_id} - {weekday}, {day.format('YYYY-MM-DD')}", found, staff_names))
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def week(
    service_id: Annotated[str, typer.Argument(help="Service to book")],
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD), defaults to today")] = None,
    days: Annotated[Optional[int], typer.Option("--days", help="Number of days to show")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show how many slots are open per day.
    """
    try:
        config, service = _setup(config_file, mock, verbose)
        tz = service.settings.timezone
        first_day = _parse_date(start, tz)
        day_count = days if days is not None else config.booking_days

        by_day = asyncio.run(
            service.find_slots_for_days(service_id, first_day, day_count, now=pendulum.now(tz))
        )

        table = Table(title=f"Open slots for {service_id}", show_header=True, header_style="bold cyan")
        table.add_column("Day", style="bold yellow")
        table.add_column("Open slots", justify="right")
        table.add_column("First")

        for day, found in by_day.items():
            first = min((slot.start_time for slot in found), default=None)
            table.add_row(
                f"{WEEKDAY_NAMES[sunday_based_weekday(day)][:3]} {day.isoformat()}",
                str(len(found)),
                first.format("HH:mm") if first else "-",
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    service_id: Annotated[str, typer.Argument(help="Service to book")],
    staff_id: Annotated[str, typer.Argument(help="Staff member performing the service")],
    date: Annotated[str, typer.Option("--date", "-d", help="Day of the appointment (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", "-t", help="Start time (HH:mm)")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[str, typer.Option("--email", help="Client email")],
    phone: Annotated[str, typer.Option("--phone", help="Client phone")] = "",
    notes: Annotated[str, typer.Option("--notes", help="Notes for the business")] = "",
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Book an appointment in an open slot.
    """
    try:
        _, service = _setup(config_file, mock, verbose)
        tz = service.settings.timezone
        try:
            start_time = pendulum.from_format(f"{date} {time}", "YYYY-MM-DD HH:mm", tz=tz)
        except ValueError as e:
            console.print(f"[red]Error parsing date/time: {e}[/red]")
            raise typer.Exit(1)

        async def run():
            offered = await service.list_services()
            chosen = _find_service(offered, service_id)
            slot = TimeSlot(
                start_time=start_time,
                end_time=start_time.add(minutes=chosen.duration),
                is_available=True,
                staff_id=staff_id,
            )
            request = build_booking_request(
                chosen, slot, client_name=name, client_email=email, client_phone=phone, notes=notes
            )
            return await service.book(request, now=pendulum.now(tz)), slot

        appointment, slot = asyncio.run(run())

        console.print(
            f"\n[green]✓ Booked {appointment.id}:[/green] {service_id} with {staff_id}, {slot.format_display()}\n"
        )

    except BookingConflictError as e:
        console.print(f"[bold red]Not booked:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def services(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the active services.
    """
    try:
        _, service = _setup(config_file, mock, verbose)
        offered = asyncio.run(service.list_services())

        if not offered:
            console.print("[yellow]No active services.[/yellow]")
            return

        table = Table(title="Services", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Duration", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Staff", style="dim")

        for item in offered:
            table.add_row(
                item.id, item.name, f"{item.duration} min", f"{item.price:.2f}", ", ".join(sorted(item.staff_ids))
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def staff(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List active staff and their weekly hours.
    """
    try:
        _, service = _setup(config_file, mock, verbose)
        roster: List[StaffMember] = asyncio.run(service.list_staff())

        table = Table(title="Staff", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Role", style="dim")
        table.add_column("Hours")

        for member in roster:
            hours = ", ".join(
                f"{WEEKDAY_NAMES[entry.day_of_week][:3]} {entry.start_time:%H:%M}-{entry.end_time:%H:%M}"
                for entry in member.availability
            )
            table.add_row(member.id, member.name, member.role, hours or "-")

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def business(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the booking settings in effect and, for the sample business, its opening hours.
    """
    try:
        configure_logging(verbose)
        config = _load_config(config_file, mock)
        backend, settings = _build_backend(config, mock)

        table = Table(title="Booking settings", show_header=False)
        table.add_column("Setting", style="bold yellow")
        table.add_column("Value")
        table.add_row("Timezone", settings.timezone)
        table.add_row("Slot step", f"{settings.slot_duration} min")
        table.add_row("Buffer", f"{settings.buffer_time} min" + ("" if settings.apply_buffer else " (not applied)"))
        table.add_row(
            "Lead time", f"{settings.booking_lead_time} h" + ("" if settings.enforce_lead_time else " (not enforced)")
        )
        table.add_row("Overlap check", settings.overlap_mode.value)

        console.print()
        if isinstance(backend, MockBookingBackend):
            console.print(f"[bold cyan]{backend.business_name}[/bold cyan]")
            for hours in backend.business_hours:
                console.print(f"  {WEEKDAY_NAMES[hours.day_of_week][:3]} {hours}")
            console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
