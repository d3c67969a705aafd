"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional, Union

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from ..adapters.memory_store import InMemoryScheduleStore
from ..adapters.schedule_sources import ScheduleSources
from ..adapters.sql_store import SqlScheduleStore
from ..config import AppConfig, load_config
from ..domain.exceptions import AvailabilityError
from ..domain.models import DayAvailability, TimeOffRange, TimeOffType, TimeSlot
from ..domain.time_utils import parse_date
from ..services.availability_service import AvailabilityRequest, AvailabilityService
from ..services.booking_guard import BookingGuard
from ..services.time_off_service import TimeOffService

app = typer.Typer(
    name="clinicslots",
    help="Compute staff availability and guard appointment bookings",
    add_completion=False
)

console = Console()

Store = Union[InMemoryScheduleStore, SqlScheduleStore]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the in-memory store with sample data instead of the database."),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="JSON file to load into the in-memory store (implies --mock)."),
]
LogLevelOption = Annotated[
    Optional[str],
    typer.Option("--log-level", help="Override the configured log level."),
]
TenantOption = Annotated[str, typer.Option("--tenant", "-t", help="Tenant (clinic) id")]


def _setup(config_file: Optional[Path], log_level: Optional[str]) -> AppConfig:
    """Load configuration and route log records through rich."""
    config = load_config(config_file)
    level = (log_level or config.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    return config


def _open_store(config: AppConfig, mock: bool, data: Optional[Path], announce: bool = True) -> Store:
    if mock or data is not None:
        if announce:
            console.print("[yellow]⚠  MOCK MODE: using sample schedule data[/yellow]\n")
        return InMemoryScheduleStore.load_from_json(data)
    return SqlScheduleStore.from_url(config.database_url)


def _build_service(config: AppConfig, store: Store) -> AvailabilityService:
    sources = ScheduleSources(
        staff_repository=store,
        time_off_repository=store,
        appointment_repository=store,
        default_timeout=config.source_timeout_seconds,
    )
    return AvailabilityService(
        sources,
        defaults=config.defaults,
        max_range_days=config.max_range_days,
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def _print_day(day: DayAvailability) -> None:
    title = f"{day.date.isoformat()} ({day.date.strftime('%A')})"
    if not day.is_working_day:
        console.print(f"[dim]{title}: not a working day[/dim]")
        return

    table = Table(
        title=f"{title} {day.working_hours.start_time}-{day.working_hours.end_time}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Free slots", style="bold green")
    table.add_column("Conflicts", style="yellow")

    slots = [str(slot) for slot in day.available_slots]
    conflicts = [
        f"{conflict.start_time}-{conflict.end_time} {escape(conflict.description)}"
        for conflict in day.conflicts
    ]
    for index in range(max(len(slots), len(conflicts), 1)):
        table.add_row(
            slots[index] if index < len(slots) else "",
            conflicts[index] if index < len(conflicts) else "",
        )

    console.print(table)


@app.command()
def availability(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD). Defaults to --start")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    hours_start: Annotated[Optional[str], typer.Option("--hours-start", help="Working hours start (HH:MM)")] = None,
    hours_end: Annotated[Optional[str], typer.Option("--hours-end", help="Working hours end (HH:MM)")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON instead of tables")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Show free slots and conflicts per day.

    Examples:

        clinicslots availability dr-lee -t clinic-1 --start 2024-11-25 --end 2024-11-29 --mock

        clinicslots availability dr-lee -t clinic-1 --start 2024-11-26 -d 15 --hours-start 08:00 --hours-end 12:00

        clinicslots availability dr-lee -t clinic-1 --start 2024-11-26 --json --mock
    """
    try:
        config = _setup(config_file, log_level)
        service = _build_service(config, _open_store(config, mock, data, announce=not as_json))

        days = asyncio.run(
            service.compute_availability(
                AvailabilityRequest(
                    staff_id=staff_id,
                    tenant_id=tenant,
                    start_date=start,
                    end_date=end or start,
                    slot_duration=duration,
                    working_hours_start=hours_start,
                    working_hours_end=hours_end,
                )
            )
        )

        if as_json:
            console.print_json(data=[day.to_dict() for day in days])
            return

        console.print()
        for day in days:
            _print_day(day)
        console.print()

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("next-slot")
def next_slot(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    day: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    preferred: Annotated[Optional[str], typer.Option("--preferred", "-p", help="Earliest acceptable start (HH:MM)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Find the first free slot on a date.
    """
    try:
        config = _setup(config_file, log_level)
        service = _build_service(config, _open_store(config, mock, data))

        slot: Optional[TimeSlot] = asyncio.run(
            service.get_next_available_slot(
                staff_id,
                tenant,
                day,
                preferred_time=preferred,
                slot_duration=duration,
            )
        )

        if slot is None:
            console.print(f"\n[yellow]⚠ No free slot for {staff_id} on {day}.[/yellow]\n")
        else:
            console.print(f"\n[bold green]✓ Next free slot on {day}:[/bold green] {slot}\n")

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def summary(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    end: Annotated[str, typer.Option("--end", help="End date (YYYY-MM-DD)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Count free slots per day over a date range.
    """
    try:
        config = _setup(config_file, log_level)
        service = _build_service(config, _open_store(config, mock, data))

        result = asyncio.run(
            service.get_available_slots_for_date_range(
                staff_id, tenant, start, end, slot_duration=duration
            )
        )

        if not result.slots_by_day:
            console.print(
                "\n[yellow]⚠ No free slots found.[/yellow]\n"
                "Try a longer range or a shorter slot duration.\n"
            )
            return

        table = Table(
            title=f"Free slots for {staff_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold yellow")
        table.add_column("Slots", justify="right")
        table.add_column("First", style="green")
        table.add_column("Last", style="green")

        for day, slots in result.slots_by_day.items():
            table.add_row(day, str(len(slots)), str(slots[0]), str(slots[-1]))

        console.print()
        console.print(table)
        console.print(
            f"[bold green]✓ {result.total_count} free slot(s) on {result.day_count} day(s)[/bold green]\n"
        )

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("quick-check")
def quick_check(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    day: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Option("--from", help="Window start (HH:MM)")],
    end_time: Annotated[str, typer.Option("--to", help="Window end (HH:MM)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Check whether one window is free.
    """
    try:
        config = _setup(config_file, log_level)
        service = _build_service(config, _open_store(config, mock, data))

        result = asyncio.run(
            service.quick_availability_check(staff_id, tenant, day, start_time, end_time)
        )

        console.print()
        if result.available:
            console.print(f"[bold green]✓ {day} {start_time}-{end_time} is free[/bold green]\n")
            return

        console.print(f"[bold red]✗ {day} {start_time}-{end_time} is not free[/bold red]")
        for conflict in result.conflicts:
            console.print(
                f"  {conflict.start_time}-{conflict.end_time} "
                f"[dim]{conflict.type.value}[/dim] {escape(conflict.description)}"
            )
        console.print()

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def reserve(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    day: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Option("--from", help="Start time (HH:MM)")],
    end_time: Annotated[str, typer.Option("--to", help="End time (HH:MM)")],
    patient: Annotated[Optional[str], typer.Option("--patient", help="Patient id")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Free-text notes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Reserve a slot for a staff member.
    """
    try:
        config = _setup(config_file, log_level)
        guard = BookingGuard(_open_store(config, mock, data))

        appointment = asyncio.run(
            guard.reserve_slot(
                tenant,
                staff_id,
                day,
                start_time,
                end_time,
                patient_id=patient,
                notes=notes,
            )
        )

        console.print(Panel.fit(
            f"[bold green]✓ Slot reserved[/bold green]\n\n"
            f"[bold]Appointment:[/bold] {appointment.id}\n"
            f"[bold]When:[/bold] {appointment.date.isoformat()} "
            f"{appointment.start_time}-{appointment.end_time}\n"
            f"[bold]Status:[/bold] {appointment.status.value}",
            title="Reservation"
        ))

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def reschedule(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id to move")],
    tenant: TenantOption,
    day: Annotated[str, typer.Option("--date", help="New date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Option("--from", help="New start time (HH:MM)")],
    end_time: Annotated[Optional[str], typer.Option("--to", help="New end time (HH:MM). Keeps the duration by default")] = None,
    staff_id: Annotated[Optional[str], typer.Option("--staff", help="Move to another staff member")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Move an appointment to a new slot.
    """
    try:
        config = _setup(config_file, log_level)
        guard = BookingGuard(_open_store(config, mock, data))

        appointment = asyncio.run(
            guard.reschedule(
                tenant,
                appointment_id,
                day,
                start_time,
                new_end_time=end_time,
                staff_id=staff_id,
            )
        )

        console.print(Panel.fit(
            f"[bold green]✓ Appointment rescheduled[/bold green]\n\n"
            f"[bold]Replaced:[/bold] {appointment_id}\n"
            f"[bold]New appointment:[/bold] {appointment.id}\n"
            f"[bold]When:[/bold] {appointment.date.isoformat()} "
            f"{appointment.start_time}-{appointment.end_time}",
            title="Reschedule"
        ))

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("time-off")
def time_off(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    tenant: TenantOption,
    start: Annotated[str, typer.Option("--start", help="First date (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Option("--end", help="Last date (YYYY-MM-DD). Defaults to --start")] = None,
    start_time: Annotated[Optional[str], typer.Option("--from", help="Start time (HH:MM). Omit for a full day")] = None,
    end_time: Annotated[Optional[str], typer.Option("--to", help="End time (HH:MM). Omit for a full day")] = None,
    kind: Annotated[TimeOffType, typer.Option("--type", help="Kind of time off")] = TimeOffType.OTHER,
    every: Annotated[Optional[List[int]], typer.Option("--every", help="Repeat weekly on this ISO weekday (1=Monday). Repeatable")] = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Last date of a weekly repeat (YYYY-MM-DD)")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Shown in conflicts")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    log_level: LogLevelOption = None,
):
    """
    Add approved time off, rejecting overlaps with existing time off.

    Examples:

        clinicslots time-off dr-lee -t clinic-1 --start 2024-12-23 --end 2024-12-27 --type vacation

        clinicslots time-off dr-lee -t clinic-1 --start 2024-12-02 --from 12:00 --to 13:00 --type lunch --every 1 --every 3 --until 2025-03-31
    """
    try:
        config = _setup(config_file, log_level)
        service = TimeOffService(_open_store(config, mock, data))

        saved = asyncio.run(
            service.create_time_off(
                TimeOffRange(
                    staff_id=staff_id,
                    tenant_id=tenant,
                    type=kind,
                    start_date=parse_date(start),
                    end_date=parse_date(end or start),
                    start_time=start_time,
                    end_time=end_time,
                    is_recurring=bool(every),
                    recurring_days=frozenset(every or ()),
                    recurring_end_date=parse_date(until) if until else None,
                    description=description,
                )
            )
        )

        window = "full day" if saved.is_full_day else f"{saved.start_time}-{saved.end_time}"
        console.print(Panel.fit(
            f"[bold green]✓ Time off added[/bold green]\n\n"
            f"[bold]Id:[/bold] {saved.id}\n"
            f"[bold]Dates:[/bold] {saved.start_date.isoformat()} to {saved.effective_end_date.isoformat()}\n"
            f"[bold]When:[/bold] {window}",
            title=escape(saved.describe())
        ))

    except (AvailabilityError, FileNotFoundError, ValueError, SQLAlchemyError) as e:
        _fail(e)


@app.command("init-db")
def init_db(
    config_file: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """
    Create the database tables and the slot uniqueness index.
    """
    try:
        config = _setup(config_file, log_level)
        store = SqlScheduleStore.from_url(config.database_url)
        store.create_schema()
        console.print(f"\n[green]✓ Schema created at {config.database_url}[/green]\n")

    except (FileNotFoundError, ValueError, SQLAlchemyError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
