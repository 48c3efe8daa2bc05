"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryMeetingStore, InMemoryNotificationSink, MockSlotProvider
from ..adapters.mock_social_client import MockSocialClient
from ..adapters.social_client import SocialApiClient
from ..config import AppConfig
from ..domain.exceptions import BookingError
from ..domain.models import Notification
from ..domain.slot_generator import SlotGenerator
from ..services.booking_workflow import BookingWorkflow

app = typer.Typer(
    name="meetingbooker",
    help="Book meetings with social-network profiles",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled profiles instead of the social-network API.")
]
SeedOption = Annotated[
    Optional[int],
    typer.Option("--seed", help="Seed for slot availability (same seed, same slots).")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Search profiles, inspect a host's free slots and book meetings.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        return AppConfig.load_or_default(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _build_social_client(config: AppConfig, mock: bool):
    if mock:
        return MockSocialClient()
    return SocialApiClient(api_key=config.api_key, base_url=config.api_base_url)


def _build_workflow(
    config: AppConfig,
    seed: Optional[int],
    notification_sink: Optional[InMemoryNotificationSink] = None,
) -> BookingWorkflow:
    generator = SlotGenerator(
        start_time=config.slots.get_start_time(),
        end_time=config.slots.get_end_time(),
        duration_minutes=config.slots.duration_minutes,
        availability_ratio=config.slots.availability_ratio,
        timezone=config.timezone,
    )
    return BookingWorkflow(
        slot_provider=MockSlotProvider(generator=generator, seed=seed),
        meeting_store=InMemoryMeetingStore(),
        notification_sink=notification_sink or InMemoryNotificationSink(),
        booking_window=config.get_booking_window(),
        timezone=config.timezone,
        auto_reset_seconds=config.auto_reset_seconds,
    )


def _slot_table(workflow: BookingWorkflow, title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Time")
    table.add_column("Status")

    for idx, slot in enumerate(workflow.slots, 1):
        status = "[green]available[/green]" if slot.available else "[red]busy[/red]"
        table.add_row(str(idx), slot.format_display(), status)

    return table


def _notification_table(notifications: List[Notification], user_id: int, unread: int) -> Table:
    table = Table(
        title=f"Notifications for FID {user_id} ({unread} unread)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Type", no_wrap=True)
    table.add_column("From", justify="right", style="dim")
    table.add_column("Message")
    table.add_column("Status", no_wrap=True)

    for notification in notifications:
        status = "[dim]read[/dim]" if notification.read else "[bold yellow]unread[/bold yellow]"
        table.add_row(
            notification.type.value,
            str(notification.sender_id),
            notification.message,
            status,
        )

    return table


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Username or display name to search for")] = "",
    limit: Annotated[int, typer.Option("--limit", "-l", help="Maximum number of results")] = 10,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Search social-network profiles. Without a query, suggested profiles are shown.
    """
    config = _load_config(config_file)
    client = _build_social_client(config, mock)

    try:
        if query:
            users = client.search_users(query, limit=limit)
        else:
            users = client.get_trending_users(limit=limit)
    except BookingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not users:
        console.print("[yellow]No profiles found.[/yellow]")
        return

    table = Table(title="Profiles", show_header=True, header_style="bold cyan")
    table.add_column("FID", justify="right", style="bold yellow")
    table.add_column("Username")
    table.add_column("Display name")
    table.add_column("Followers", justify="right", style="dim")

    for user in users:
        table.add_row(
            str(user.fid),
            f"@{user.username}",
            user.display_name,
            str(user.follower_count) if user.follower_count is not None else "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def user(
    fid: Annotated[int, typer.Argument(help="FID of the profile")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show a single profile.
    """
    config = _load_config(config_file)
    client = _build_social_client(config, mock)

    try:
        profile = client.get_user_by_fid(fid)
    except BookingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold]{profile.display_name}[/bold] (@{profile.username})\n\n"
        f"{profile.bio or ''}\n\n"
        f"[dim]Followers:[/dim] {profile.follower_count or 0}   "
        f"[dim]Following:[/dim] {profile.following_count or 0}",
        title=f"FID {profile.fid}"
    ))


@app.command()
def slots(
    host: Annotated[int, typer.Argument(help="FID of the host")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to inspect (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    seed: SeedOption = None,
):
    """
    List the host's time slots for a day.
    """
    config = _load_config(config_file)
    workflow = _build_workflow(config, seed)
    day = date or pendulum.today(config.timezone).to_date_string()

    try:
        asyncio.run(workflow.load_slots(host, day))
    except BookingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    console.print(_slot_table(workflow, f"Slots for FID {host} on {day}"))
    console.print()


async def _run_booking(
    workflow: BookingWorkflow,
    host: int,
    guest: int,
    day: str,
    slot_number: Optional[int],
    title: str,
    description: Optional[str],
):
    await workflow.load_slots(host, day)

    if slot_number is not None:
        if not 1 <= slot_number <= len(workflow.slots):
            raise typer.BadParameter(f"Slot number must be between 1 and {len(workflow.slots)}")
        chosen = workflow.slots[slot_number - 1]
    else:
        chosen = next((s for s in workflow.slots if s.available), None)
        if chosen is None:
            console.print(_slot_table(workflow, f"Slots for FID {host} on {day}"))
            console.print("[yellow]No available time slots for this date.[/yellow]")
            raise typer.Exit(1)

    workflow.select_slot(chosen)
    return await workflow.submit_booking(host, guest, chosen, title, description)


@app.command()
def book(
    host: Annotated[int, typer.Argument(help="FID of the host")],
    guest: Annotated[int, typer.Option("--guest", "-g", help="Your own FID")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to book (YYYY-MM-DD). Defaults to today.")] = None,
    slot: Annotated[Optional[int], typer.Option("--slot", "-s", help="Slot number as shown by 'slots'. Defaults to the first available one.")] = None,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Meeting title")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Meeting description")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    seed: SeedOption = None,
):
    """
    Book a meeting with a host.

    Examples:

        meetingbooker book 42 --guest 99 --mock

        meetingbooker book 42 --guest 99 --date 2025-06-02 --slot 3 --title "Sync"
    """
    config = _load_config(config_file)
    client = _build_social_client(config, mock)
    day = date or pendulum.today(config.timezone).to_date_string()

    try:
        host_profile = client.get_user_by_fid(host)
        meeting_title = title or f"Meeting with {host_profile.display_name}"

        sink = InMemoryNotificationSink(social_client=client)
        workflow = _build_workflow(config, seed, notification_sink=sink)
        result = asyncio.run(
            _run_booking(workflow, host, guest, day, slot, meeting_title, description)
        )
        host_notifications = asyncio.run(sink.list_for_user(host))
    except BookingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    meeting = result.meeting
    console.print(Panel.fit(
        f"[bold green]✓ Booking successful![/bold green]\n\n"
        f"[bold]Title:[/bold] {meeting.title}\n"
        f"[bold]When:[/bold] {workflow.selected_slot.format_display()}\n"
        f"[bold]Host:[/bold] {host_profile.display_name} (FID {meeting.host_id})\n"
        f"[bold]Guest:[/bold] FID {meeting.guest_id}\n"
        f"[bold]Status:[/bold] {meeting.status.value}\n"
        f"[dim]{meeting.id}[/dim]",
        title="Meeting"
    ))

    if result.notification is None:
        console.print("[yellow]⚠ The host could not be notified.[/yellow]")
    else:
        console.print(f"[green]✓ Notification sent:[/green] {result.notification.message}")

    console.print()
    console.print(_notification_table(host_notifications, host, sink.unread_count(host)))
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]meetingbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
