"""
Reflect - Main Entry Point

CLI for the Reflect CBT journaling coach: chat with the coach, keep a
mood log, breathe, and manage your own provider keys.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from reflect import __version__
from reflect.config.loader import load_settings
from reflect.config.schema import ReflectSettings
from reflect.context import AppContext
from reflect.exceptions import (
    ConfigurationError,
    PinError,
    ReflectError,
    SendInProgressError,
)
from reflect.llm.router import Failure, Recovered, RouterOutcome
from reflect.models import MOODS, ModelMode, ProviderCredentials, Role, UserSettings
from reflect.observability.logging_config import configure_logging
from reflect.wellness import breathing
from reflect.wellness.mood import average_score, insight, trend

root_env = Path(__file__).parent / ".env"
if root_env.exists():
    load_dotenv(root_env, override=True)
else:
    load_dotenv(override=True)

app = typer.Typer(
    name="reflect",
    help="Reflect - CBT journaling coach (bring your own keys)",
)
console = Console()
logger = logging.getLogger("reflect")

_state: dict[str, object] = {"config": None, "verbose": False}

USER_OPTION = typer.Option(
    "local-user", "--user", "-u", envvar="REFLECT_USER", help="User id"
)
DEMO_OPTION = typer.Option(False, "--demo", help="Demo mode: no network, nothing kept")


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to reflect.yaml"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show INFO logs"),
):
    """Reflect - CBT journaling coach."""
    _state["config"] = config
    _state["verbose"] = verbose


# =========================================================================
# Helpers
# =========================================================================


def _settings(demo: bool = False) -> ReflectSettings:
    """Load settings and set up logging from them, with a friendly error on failure."""
    try:
        settings = load_settings(_state["config"])
    except ConfigurationError as e:
        console.print(Panel(
            f"[red]{escape(str(e))}[/]",
            title="⚠ Configuration Error",
            border_style="red",
        ))
        raise typer.Exit(code=1)
    configure_logging(
        env=settings.env,
        level=logging.INFO if _state["verbose"] else settings.log_level,
    )
    if demo:
        settings = settings.model_copy(update={"demo_mode": True})
    return settings


def _sign_in(user: str, demo: bool = False, *, gate: bool = True) -> AppContext:
    settings = _settings(demo)
    try:
        ctx = AppContext.sign_in(user, settings)
    except ReflectError as e:
        console.print(f"[red]Could not sign in:[/] {escape(str(e))}")
        raise typer.Exit(code=1)
    if gate:
        _unlock_gate(ctx)
    return ctx


def _unlock_gate(ctx: AppContext) -> None:
    """Ask for the PIN when the app is locked."""
    if not ctx.pin.is_locked:
        return
    pin = Prompt.ask("[bold]Enter PIN[/]", password=True)
    if not ctx.pin.unlock(pin):
        console.print("[red]Incorrect PIN[/]")
        ctx.close()
        raise typer.Exit(code=1)


def _render_outcome(outcome: RouterOutcome) -> None:
    if isinstance(outcome, Failure):
        console.print(Panel(
            f"[red]{outcome.message}[/]",
            title="Connection Error",
            border_style="red",
        ))
        return
    subtitle = "[dim]answered by fallback[/]" if isinstance(outcome, Recovered) else None
    console.print(Panel(escape(outcome.text), title="Coach", subtitle=subtitle, border_style="cyan"))


def _remind_check_in(ctx: AppContext) -> None:
    latest = ctx.moods.latest()
    if ctx.check_in.should_check_in(latest):
        console.print(
            "[yellow]You haven't logged a mood today.[/] "
            "[dim]reflect mood <label> \"caption\"[/]"
        )
    ctx.check_in.notify_if_due(latest)


# =========================================================================
# Commands
# =========================================================================


@app.command()
def info(user: str = USER_OPTION, demo: bool = DEMO_OPTION):
    """Show configuration, tiers and which keys are set."""
    ctx = _sign_in(user, demo, gate=False)
    settings = ctx.settings
    masked = ctx.credentials.masked()

    table = Table(title=f"Reflect {__version__} - Provider Tiers")
    table.add_column("Tier", style="cyan")
    table.add_column("Model", style="white")
    table.add_column("Temperature", style="green")
    table.add_column("Key", style="yellow")
    for row in ctx.llm_config.list_tiers():
        table.add_row(
            row["tier"], row["model"], str(row["temperature"]), masked[row["tier"]]
        )
    console.print(table)

    retry = ctx.llm_config.retry
    console.print(Panel(
        f"User: {ctx.user_id}\n"
        f"Environment: {settings.env}\n"
        f"Store: {type(ctx.store).__name__}\n"
        f"Data dir: {settings.data_dir}\n"
        f"Demo mode: {'on' if settings.demo_mode else 'off'}\n"
        f"Retries: {retry.max_retries} (initial delay {retry.initial_delay_ms} ms)\n"
        f"PIN lock: {'set' if ctx.pin.has_pin else 'not set'}",
        title="Reflect",
    ))
    ctx.close()


@app.command()
def chat(
    user: str = USER_OPTION,
    deep: bool = typer.Option(False, "--deep", help="Start in deep mode"),
    demo: bool = DEMO_OPTION,
):
    """Interactive coaching session. /new, /fast, /deep, /lock, /quit."""
    ctx = _sign_in(user, demo)
    if deep:
        ctx.set_mode(ModelMode.DEEP)
    if ctx.credentials.is_empty and not ctx.settings.demo_mode:
        console.print(
            "[yellow]No API keys configured.[/] Run [bold]reflect settings[/] first."
        )

    _remind_check_in(ctx)
    for message in ctx.coach.history:
        who = "You" if message.role == Role.USER else "Coach"
        console.print(f"[dim]{who}:[/] {escape(message.content)}")

    async def _run():
        while True:
            text = await asyncio.to_thread(
                Prompt.ask, f"[bold]you[/] [dim]({ctx.coach.mode.value})[/]"
            )
            command = text.strip().lower()
            if command in ("/quit", "/exit"):
                return
            if command == "/lock":
                if ctx.lock():
                    console.print("[yellow]Locked.[/] [dim]Your PIN is needed next time.[/]")
                    return
                console.print("[dim]No PIN set. Use reflect set-pin first.[/]")
                continue
            if command == "/new":
                archive_id = ctx.coach.start_new_session()
                console.print(
                    f"[green]Session archived[/] [dim]{archive_id}[/]"
                    if archive_id else "[dim]New session started[/]"
                )
                continue
            if command in ("/fast", "/deep"):
                ctx.set_mode(command[1:])
                console.print(f"[dim]Mode: {ctx.coach.mode.value}[/]")
                continue
            if not command:
                continue
            try:
                with console.status("Thinking..."):
                    outcome = await ctx.coach.send_message(text)
            except SendInProgressError as e:
                console.print(f"[yellow]{escape(str(e))}[/]")
                continue
            _render_outcome(outcome)

    try:
        asyncio.run(_run())
    finally:
        ctx.close()


@app.command()
def send(
    text: str = typer.Argument(..., help="Your message to the coach"),
    user: str = USER_OPTION,
    deep: bool = typer.Option(False, "--deep", help="Use the deep tier first"),
    demo: bool = DEMO_OPTION,
):
    """Send one message and print the reply."""
    ctx = _sign_in(user, demo)
    if deep:
        ctx.set_mode(ModelMode.DEEP)

    async def _run() -> RouterOutcome:
        return await ctx.coach.send_message(text)

    try:
        outcome = asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    finally:
        ctx.close()

    _render_outcome(outcome)
    if not outcome.ok:
        raise typer.Exit(code=1)


@app.command(name="new-session")
def new_session(user: str = USER_OPTION, demo: bool = DEMO_OPTION):
    """Archive the current conversation and start a fresh one."""
    ctx = _sign_in(user, demo)
    archive_id = ctx.coach.start_new_session()
    if archive_id:
        console.print(f"[green]Session archived:[/] {archive_id}")
    else:
        console.print("[dim]Nothing to archive; the session is already empty.[/]")
    ctx.close()


@app.command()
def mood(
    label: str = typer.Argument(
        ..., help=f"One of: {', '.join(m.label for m in MOODS)}"
    ),
    caption: str = typer.Argument(..., help="What's on your mind?"),
    user: str = USER_OPTION,
    demo: bool = DEMO_OPTION,
):
    """Log how you feel right now."""
    ctx = _sign_in(user, demo)
    try:
        entry = ctx.moods.log(label, caption)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    finally:
        ctx.close()
    console.print(
        f"{entry.mood.emoji} [green]Logged[/] {entry.mood.label}: {escape(entry.caption)}"
    )


@app.command()
def insights(
    user: str = USER_OPTION,
    limit: int = typer.Option(20, help="How many recent entries to show"),
    demo: bool = DEMO_OPTION,
):
    """Mood history, trend and a short insight."""
    ctx = _sign_in(user, demo)
    entries = ctx.moods.recent(limit)
    ctx.close()

    if not entries:
        console.print("[yellow]No mood logs yet.[/]")
        return

    table = Table(title="Mood History")
    table.add_column("When", style="dim")
    table.add_column("Mood", style="cyan")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Caption", style="white")
    for e in entries:
        table.add_row(
            e.timestamp.astimezone().strftime("%a %d %b %H:%M"),
            f"{e.mood.emoji} {e.mood.label}",
            str(e.mood.score),
            escape(e.caption),
        )
    console.print(table)

    points = trend(entries)
    series = "  ".join(f"{p.day}:{p.score}" for p in points)
    console.print(Panel(
        f"Trend (oldest first): {series}\n"
        f"Average score: {average_score(entries)}\n\n"
        f"[bold]{insight(points)}[/]",
        title="AI Insights",
    ))


@app.command()
def breathe(
    cycles: int = typer.Option(1, min=1, help="Number of 4-7-8 cycles"),
):
    """Guided 4-7-8 breathing."""
    console.print(f"[dim]{breathing.GUIDANCE}[/]")

    with Live(console=console, refresh_per_second=4) as live:
        def _tick(phase: breathing.Phase, remaining: int) -> None:
            live.update(Panel(
                f"[bold]{phase.value}[/]\n\n{remaining}",
                title="Breathe",
                border_style="cyan",
            ))

        asyncio.run(breathing.run(_tick, cycles=cycles))

    console.print("[green]Well done.[/]")


@app.command()
def quote(user: str = USER_OPTION, demo: bool = DEMO_OPTION):
    """Quote of the day."""
    ctx = _sign_in(user, demo)

    async def _run() -> str:
        return await ctx.quotes.quote_of_the_day(ctx.moods.recent(3))

    try:
        text = asyncio.run(_run())
    finally:
        ctx.close()
    console.print(Panel(f"[italic]\"{escape(text)}\"[/]", title="Daily Quote"))


@app.command()
def checkin(
    user: str = USER_OPTION,
    dismiss: bool = typer.Option(False, "--dismiss", help="Don't remind me today"),
    demo: bool = DEMO_OPTION,
):
    """Check whether today's mood has been logged."""
    ctx = _sign_in(user, demo)
    try:
        if dismiss:
            ctx.check_in.dismiss()
            console.print("[dim]Okay, no more reminders today.[/]")
        elif ctx.check_in.dismissed_today():
            console.print("[dim]Reminder dismissed for today.[/]")
        elif ctx.check_in.should_check_in(ctx.moods.latest()):
            console.print("[yellow]How are you feeling today?[/] Log it with [bold]reflect mood[/].")
        else:
            console.print("[green]You've already checked in today.[/]")
    finally:
        ctx.close()


@app.command()
def settings(
    user: str = USER_OPTION,
    age: Optional[int] = typer.Option(None, help="Your age"),
    fast_key: Optional[str] = typer.Option(None, "--fast-key", help="Groq API key"),
    deep_key: Optional[str] = typer.Option(None, "--deep-key", help="DeepSeek API key"),
    fallback_key: Optional[str] = typer.Option(
        None, "--fallback-key", help="Gemini API key"
    ),
    demo: bool = DEMO_OPTION,
):
    """Show or update your profile and provider keys."""
    ctx = _sign_in(user, demo)
    try:
        current = ctx.user_settings
        changes = {
            k: v
            for k, v in (
                ("fast_key", fast_key),
                ("deep_key", deep_key),
                ("fallback_key", fallback_key),
            )
            if v is not None
        }
        if age is not None or changes:
            creds = current.credentials.model_dump()
            creds.update(changes)
            try:
                current = ctx.save_settings(UserSettings(
                    age=age if age is not None else current.age,
                    credentials=ProviderCredentials(**creds),
                ))
            except ValueError as e:
                console.print(f"[red]Invalid settings:[/] {escape(str(e))}")
                raise typer.Exit(code=1)
            console.print("[green]Settings saved.[/]")

        masked = current.credentials.masked()
        table = Table(title="Settings")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Age", str(current.age) if current.age else "-")
        table.add_row("Fast key (Groq)", masked["fast"])
        table.add_row("Deep key (DeepSeek)", masked["deep"])
        table.add_row("Fallback key (Gemini)", masked["fallback"])
        console.print(table)
    finally:
        ctx.close()


@app.command(name="set-pin")
def set_pin(user: str = USER_OPTION):
    """Set (or replace) the 4-digit app PIN."""
    ctx = _sign_in(user)
    try:
        if ctx.pin.has_pin and not Confirm.ask("Replace the existing PIN?"):
            return
        pin = Prompt.ask("New PIN", password=True)
        confirm = Prompt.ask("Confirm PIN", password=True)
        try:
            ctx.pin.set_pin(pin, confirm)
        except PinError as e:
            console.print(f"[red]{escape(str(e))}[/]")
            raise typer.Exit(code=1)
        console.print("[green]PIN set.[/]")
    finally:
        ctx.close()


@app.command()
def lock(user: str = USER_OPTION):
    """Lock the app and sign out."""
    ctx = _sign_in(user, gate=False)
    try:
        if not ctx.lock():
            console.print("[dim]No PIN set. Use reflect set-pin first.[/]")
            raise typer.Exit(code=1)
        console.print("[yellow]Locked.[/] Signed out.")
    finally:
        ctx.close()


@app.command()
def unlock(user: str = USER_OPTION):
    """Check your PIN."""
    ctx = _sign_in(user, gate=False)
    try:
        if not ctx.pin.has_pin:
            console.print("[dim]No PIN set.[/]")
            return
        _unlock_gate(ctx)
        console.print("[green]Unlocked.[/]")
    finally:
        ctx.close()


if __name__ == "__main__":
    app()
