"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional, Union

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..adapters.rest_store import RestBookingStore, StoreUnavailable, open_store
from ..config import AppConfig, get_default_config_path
from ..domain.calendar_grid import GRID_COLUMNS
from ..domain.exceptions import BookingError
from ..services.booking_session import BookingSession

app = typer.Typer(
    name="slotbooker",
    help="Book a time slot from the shared booking calendar",
    add_completion=False
)

console = Console()

DAY_NAMES_SHORT = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use an in-memory store instead of the hosted database.")]
SeedOption = Annotated[Optional[Path], typer.Option("--seed", help="JSON file with bookings to preload in mock mode.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and config_file is None and not config_path.exists():
        # Mock runs work without a config file
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _open_store(
    config: AppConfig,
    mock: bool,
    seed: Optional[Path],
) -> Union[RestBookingStore, InMemoryBookingStore, StoreUnavailable]:
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using in-memory bookings[/yellow]\n")
        return InMemoryBookingStore(seed_file=seed)
    return open_store(config.store)


def _show_configuration_error(store: StoreUnavailable) -> None:
    console.print(Panel.fit(
        "[bold]The application could not connect to the database.[/bold]\n"
        "Please ensure it is configured correctly.\n\n"
        f"[dim]{store.reason}[/dim]",
        title="Application Configuration Error",
        border_style="red"
    ))


def _load_config_or_exit(config_file: Optional[Path], mock: bool = False) -> AppConfig:
    try:
        return _load_config(config_file, mock)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _build_session(config: AppConfig, mock: bool, seed: Optional[Path]) -> BookingSession:
    """Open the store, or render the blocking error and exit."""
    store = _open_store(config, mock, seed)
    if isinstance(store, StoreUnavailable):
        _show_configuration_error(store)
        raise typer.Exit(1)

    return BookingSession.from_config(config, store)


def _parse_date(value: str, tz: str) -> Date:
    try:
        return pendulum.from_format(value.strip(), "YYYY-MM-DD", tz=tz).date()
    except Exception as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _parse_month(value: str, tz: str) -> Date:
    try:
        return pendulum.from_format(value.strip(), "YYYY-MM", tz=tz).date()
    except Exception as e:
        console.print(f"[red]Could not parse month '{value}': {e}[/red]")
        raise typer.Exit(1)


def _render_calendar(session: BookingSession) -> None:
    table = Table(
        title=session.month.format("MMMM YYYY"),
        show_header=True,
        header_style="bold cyan",
        show_lines=True
    )
    for name in DAY_NAMES_SHORT:
        table.add_column(name, justify="center")

    days = session.calendar()
    for start in range(0, len(days), GRID_COLUMNS):
        cells = []
        for day in days[start:start + GRID_COLUMNS]:
            label = str(day.date.day)
            if not day.is_current_month:
                cells.append(f"[dim]{label}[/dim]")
            elif day.is_weekend:
                cells.append(f"[strike bright_black]{label}[/strike bright_black]")
            elif session.resolver.is_date_fully_booked(day.date):
                cells.append(f"[red]{label}[/red]")
            elif day.is_past and not day.is_today:
                cells.append(f"[bright_black]{label}[/bright_black]")
            elif day.is_today:
                cells.append(f"[bold underline green]{label}[/bold underline green]")
            else:
                free = len(session.resolver.available_slots_for_date(day.date))
                cells.append(f"[green]{label}[/green] [dim]({free})[/dim]")
        table.add_row(*cells)

    console.print()
    console.print(table)
    console.print(
        "[green]bookable (free slots)[/green]  [red]fully booked[/red]  "
        "[bright_black]past[/bright_black]  [strike bright_black]closed[/strike bright_black]"
    )
    console.print()


def _render_day(session: BookingSession) -> None:
    day = session.selected_date
    console.print(f"\n[bold]Slots for:[/bold] [cyan]{day.format('dddd, MMMM D, YYYY')}[/cyan]\n")

    if not session.is_booking_allowed():
        console.print(f"[yellow]{session.unavailable_message()}[/yellow]\n")
        booked = session.resolver.booked_slots_for_date(day)
        console.print("[bold]Booked Slots:[/bold]")
        if not booked:
            console.print("  [italic]No slots were booked on this day.[/italic]")
        for slot in booked:
            console.print(f"  {slot.label}  [dim]Booked[/dim]")
        console.print()
        return

    available = session.available_slots()
    for idx, slot in enumerate(session.resolver.time_slots, 1):
        if slot in available:
            console.print(f"  {idx}. {slot.label}  [green]Free[/green]")
        else:
            console.print(f"  {idx}. [strike]{slot.label}[/strike]  [dim]Booked[/dim]")
    console.print()


def _load_day(session: BookingSession, day: Date) -> None:
    asyncio.run(session.go_to_month(day))
    try:
        session.select_date(day)
    except BookingError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)


@app.command()
def calendar(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month to show (YYYY-MM). Defaults to the current month.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    seed: SeedOption = None,
    verbose: VerboseOption = False,
):
    """
    Show the booking calendar for a month.
    """
    _setup_logging(verbose)
    session = _build_session(_load_config_or_exit(config_file, mock), mock, seed)

    reference = _parse_month(month, session.timezone) if month else session.today()
    asyncio.run(session.go_to_month(reference))
    _render_calendar(session)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date to inspect (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    seed: SeedOption = None,
    verbose: VerboseOption = False,
):
    """
    List the time slots of a date and whether they are still free.
    """
    _setup_logging(verbose)
    session = _build_session(_load_config_or_exit(config_file, mock), mock, seed)
    _load_day(session, _parse_date(date, session.timezone))
    _render_day(session)


def _prompt_slot(session: BookingSession, slot_option: Optional[str]) -> None:
    choice = slot_option
    while True:
        if choice is None:
            choice = typer.prompt("→ Time slot (number or id)").strip()

        slot_id = choice
        if choice.isdigit():
            idx = int(choice) - 1
            if 0 <= idx < len(session.resolver.time_slots):
                slot_id = session.resolver.time_slots[idx].id

        try:
            session.select_slot(slot_id)
            return
        except BookingError as e:
            console.print(f"[yellow]{e}[/yellow]")
            choice = None


def _prompt_field(session: BookingSession, field: str, prompt: str, value: Optional[str]) -> None:
    while True:
        if value is None:
            value = typer.prompt(prompt).strip()
        errors = session.update_form(**{field: value})
        if field not in errors and value:
            return
        console.print(f"[yellow]{errors.get(field, 'This field is required.')}[/yellow]")
        value = None


def _prompt_college(session: BookingSession, colleges: list, value: Optional[str]) -> None:
    if value is None and colleges:
        console.print("\nColleges:")
        for idx, college in enumerate(colleges, 1):
            console.print(f"  {idx}. {college}")
        while value is None:
            choice = typer.prompt("→ College (number)").strip()
            if choice.isdigit() and 0 <= int(choice) - 1 < len(colleges):
                value = colleges[int(choice) - 1]
            else:
                console.print(f"[yellow]Warning: {choice} is not a valid choice[/yellow]")
    _prompt_field(session, "college", "→ College", value)


@app.command()
def book(
    date: Annotated[Optional[str], typer.Option("--date", help="Date to book (YYYY-MM-DD)")] = None,
    slot: Annotated[Optional[str], typer.Option("--slot", help="Time slot id or number")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Your full name")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Your institutional email")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="10-digit contact number")] = None,
    college: Annotated[Optional[str], typer.Option("--college", help="Your college")] = None,
    accept_terms: Annotated[bool, typer.Option("--accept-terms", help="Accept the terms and conditions without prompting.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    seed: SeedOption = None,
    verbose: VerboseOption = False,
):
    """
    Book a time slot - prompts for anything not given as an option.

    Examples:

        # Interactive mode
        slotbooker book

        # Batch mode
        slotbooker book --date 2025-08-06 --slot 09-10 --name "Asha" \\
            --email asha@jkkn.ac.in --phone 9876543210 --college "JKKN College" --accept-terms

        # Without a hosted database
        slotbooker book --mock
    """
    _setup_logging(verbose)
    config = _load_config_or_exit(config_file, mock)
    session = _build_session(config, mock, seed)

    # 1. DATE
    console.print("[bold]1️⃣  Date[/bold]")
    if date is None:
        date = typer.prompt("→ Date (YYYY-MM-DD)", default=session.today().format("YYYY-MM-DD"))
    _load_day(session, _parse_date(date, session.timezone))
    _render_day(session)
    if not session.is_booking_allowed():
        raise typer.Exit(1)

    # 2. SLOT
    console.print("[bold]2️⃣  Time slot[/bold]")
    _prompt_slot(session, slot)

    # 3. CONTACT DETAILS
    console.print("\n[bold]3️⃣  Your details[/bold]")
    _prompt_field(session, "name", "→ Full name", name)
    _prompt_field(session, "email", f"→ Email (@{config.email_domain})", email)
    _prompt_field(session, "contact_number", "→ Contact number", phone)
    _prompt_college(session, config.colleges, college)

    # 4. TERMS
    accepted = accept_terms or typer.confirm(
        "\n→ I agree to the terms and conditions for equipment handling and safety protocols",
        default=False
    )
    session.accept_terms(accepted)
    if not session.can_submit:
        console.print(f"[bold red]Error:[/bold red] {session.blocked_reason}.")
        raise typer.Exit(1)

    # 5. SUBMIT
    console.print("\n[bold]Submitting booking...[/bold]")
    outcome = asyncio.run(session.submit())

    if not outcome.confirmed:
        console.print(f"\n[bold red]✗ {outcome.message}[/bold red]\n")
        raise typer.Exit(1)

    details = outcome.confirmation
    console.print(Panel.fit(
        f"Thank you, [bold cyan]{details.name}[/bold cyan]. Your booking for "
        f"[bold]{details.date_label}[/bold] at [bold]{details.slot_label}[/bold] is confirmed.",
        title="✓ Booking Confirmed!",
        border_style="green"
    ))
    console.print()


@app.command()
def colleges(
    config_file: ConfigOption = None,
):
    """
    List all configured colleges.
    """
    config = _load_config_or_exit(config_file)

    if not config.colleges:
        console.print("[yellow]No colleges defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured Colleges",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("#", style="dim")
    table.add_column("College", style="bold yellow")

    for idx, college in enumerate(config.colleges, 1):
        table.add_row(str(idx), college)

    console.print()
    console.print(table)
    console.print()


@app.command()
def check(
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Test the connection to the bookings store.
    """
    _setup_logging(verbose)
    config = _load_config_or_exit(config_file)

    store = open_store(config.store)
    if isinstance(store, StoreUnavailable):
        _show_configuration_error(store)
        raise typer.Exit(1)

    console.print("\n[bold]Testing connection to the bookings store...[/bold]\n")
    try:
        info = store.check_connection()
    except BookingError as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Connection successful![/bold green]\n\n"
        f"[bold]URL:[/bold] {info['url']}\n"
        f"[bold]Table:[/bold] {info['table']}",
        title="✓ Connection test"
    ))
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
