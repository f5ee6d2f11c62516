"""pushin-gate command line client.

Talks to a running pushin-gate API (see `pushin-gate serve`).

Usage:
    pushin-gate status
    pushin-gate start push-ups --reps 20 --mode tuff
    pushin-gate start plank --minutes 10
    pushin-gate reps 5
    pushin-gate complete
    pushin-gate rewards --mode cozy      # offline, no server needed
"""

from __future__ import annotations

from typing import Any

import click
import requests
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from pushin_gate.config import api_url
from pushin_gate.rewards import WorkoutRewardCalculator, format_duration, reward_table
from pushin_gate.workout import WorkoutMode

console = Console()

STATE_STYLES = {
    "locked": "bold red",
    "earning": "bold yellow",
    "unlocked": "bold green",
    "expired": "bold magenta",
}
MODE_CHOICES = [m.value for m in WorkoutMode]


class ApiClient:
    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise click.ClickException(f"Cannot reach pushin-gate at {self.base_url}: {e}")
        if not response.ok:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise click.ClickException(f"{method} {path} failed ({response.status_code}): {detail}")
        return response.json()

    def get(self, path: str, **params) -> Any:
        return self.request("GET", path, params=params or None)

    def post(self, path: str, payload: dict | None = None) -> Any:
        return self.request("POST", path, json=payload or {})


def _client(ctx: click.Context) -> ApiClient:
    return ctx.obj["client"]


def _print_status(status: dict) -> None:
    state = status["state"]
    style = STATE_STYLES.get(state, "white")
    console.print(f"State: [{style}]{state.upper()}[/{style}]  (plan: {status['plan_tier']})")

    if state == "earning" and status.get("current_workout"):
        workout = status["current_workout"]
        pct = int(status["workout_progress"] * 100)
        console.print(
            f"Workout: {workout['type']} x{workout['target_reps']} ({workout['mode']}) - {pct}% done, "
            f"earns {format_duration(workout['earned_time_seconds'])}"
        )
    elif state == "unlocked":
        console.print(
            f"Unlocked: {format_duration(status['unlock_remaining_seconds'])} left "
            f"of {format_duration(status['unlock_total_seconds'])}"
        )
    elif state == "expired":
        console.print(f"Grace period: {status['grace_remaining_seconds']}s before lock")

    if status.get("blocked"):
        console.print(f"[dim]Blocked: {', '.join(status['blocked'])}[/dim]")


def _print_command(result: dict) -> None:
    if "ignored" in result.get("events", []):
        console.print(f"[yellow]Ignored[/yellow] in state {result['state']}")
    elif result.get("changed"):
        events = ", ".join(result["events"])
        console.print(f"[green]v[/green] {result['old_state']} -> {result['new_state']} ({events})")
    _print_status(result["status"])


def _usage_table(days: list[dict], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan", border_style="blue")
    table.add_column("Date", style="white")
    table.add_column("Plan", style="dim")
    table.add_column("Earned", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Cap", justify="right")
    for day in days:
        cap = day["daily_cap_seconds"]
        used = format_duration(day["consumed_seconds"])
        if day["has_reached_cap"]:
            used = f"[red]{used}[/red]"
        table.add_row(
            day["date"],
            day["plan_tier"],
            format_duration(day["earned_seconds"]),
            used,
            format_duration(day["remaining_available_seconds"]),
            "unlimited" if cap < 0 else format_duration(cap),
        )
    return table


@click.group()
@click.option("--api-url", "api_url_option", default=None, help="pushin-gate API base URL (env: PUSHIN_API_URL)")
@click.pass_context
def cli(ctx, api_url_option):
    """pushin-gate - earn screen time with workouts."""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["client"] = ApiClient(api_url_option or api_url())


@cli.command()
def serve():
    """Run the API server in the foreground."""
    from pushin_gate.server import main

    main()


@cli.command()
@click.pass_context
def status(ctx):
    """Show the current access state."""
    _print_status(_client(ctx).get("/api/status"))


@cli.command()
@click.pass_context
def usage(ctx):
    """Show today's usage against the daily cap."""
    day = _client(ctx).get("/api/usage/today")
    console.print(_usage_table([day], "Today"))
    console.print(f"Cap progress: {int(day['progress'] * 100)}%")


@cli.command()
@click.pass_context
def weekly(ctx):
    """Show the last seven days of usage."""
    console.print(_usage_table(_client(ctx).get("/api/usage/weekly"), "Last 7 days"))


@cli.command()
@click.argument("workout_type")
@click.option("--reps", type=int, default=None, help="Target reps (held seconds for plank)")
@click.option("--minutes", type=int, default=None, help="Desired unlock minutes (target is computed)")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default="normal", show_default=True)
@click.pass_context
def start(ctx, workout_type, reps, minutes, mode):
    """Start a workout: WORKOUT_TYPE such as push-ups, squats, plank."""
    if reps is not None and minutes is not None:
        raise click.UsageError("use either --reps or --minutes, not both")
    if reps is None and minutes is None:
        minutes = 10
    payload = {"workout_type": workout_type, "mode": mode}
    if reps is not None:
        payload["target_reps"] = reps
    else:
        payload["desired_minutes"] = minutes
    _print_command(_client(ctx).post("/api/workout/start", payload))


@cli.command()
@click.argument("count", type=click.IntRange(min=1))
@click.pass_context
def reps(ctx, count):
    """Record COUNT reps (or held seconds) for the current workout."""
    _print_command(_client(ctx).post("/api/workout/reps", {"count": count}))


@cli.command()
@click.pass_context
def complete(ctx):
    """Finish the current workout and unlock."""
    _print_command(_client(ctx).post("/api/workout/complete"))


@cli.command()
@click.pass_context
def cancel(ctx):
    """Abandon the current workout."""
    _print_command(_client(ctx).post("/api/workout/cancel"))


@cli.command()
@click.pass_context
def lock(ctx):
    """Lock immediately."""
    _print_command(_client(ctx).post("/api/lock"))


@cli.command()
@click.pass_context
def emergency(ctx):
    """Emergency unlock (standard/advanced plans, limited per day)."""
    result = _client(ctx).post("/api/emergency-unlock")
    if not result["granted"]:
        console.print(f"[red]x[/red] Emergency unlock refused: {result['reason']}")
        return
    console.print(
        f"[green]v[/green] Emergency unlock for {format_duration(result['duration_seconds'])}"
        + (f" ({result['unlocks_used']} used today)" if result.get("unlocks_used") is not None else "")
    )
    _print_status(result["status"])


@cli.command()
@click.argument("tier")
@click.pass_context
def plan(ctx, tier):
    """Switch plan TIER: free, standard or advanced."""
    day = _client(ctx).post("/api/plan", {"plan_tier": tier})
    console.print(f"Plan set to [bold]{day['plan_tier']}[/bold]")
    console.print(_usage_table([day], "Today"))


@cli.command()
@click.pass_context
def streak(ctx):
    """Show workout streaks."""
    stats = _client(ctx).get("/api/streak")
    today = "[green]done[/green]" if stats["completed_today"] else "[yellow]not yet[/yellow]"
    console.print(f"Current streak: [bold]{stats['current_streak']}[/bold] days (today: {today})")
    console.print(f"Longest streak: {stats['longest_streak']} days")
    console.print(f"Total workouts: {stats['total_workouts']}")


@cli.command()
@click.option("--mode", type=click.Choice(MODE_CHOICES), default="normal", show_default=True)
@click.option("--minutes", type=click.IntRange(min=1), default=10, show_default=True)
def rewards(mode, minutes):
    """Show what each workout earns (computed locally)."""
    workout_mode = WorkoutMode(mode)
    rows = reward_table(WorkoutRewardCalculator(), workout_mode, minutes)
    table = Table(
        title=f"{workout_mode.display_name} mode, {minutes} min",
        show_header=True,
        header_style="bold cyan",
        border_style="blue",
    )
    table.add_column("Workout", style="white")
    table.add_column("Target", justify="right")
    table.add_column("Earns", justify="right", style="green")
    for row in rows:
        table.add_row(
            row["workout_type"],
            f"{row['target']} {row['unit']}",
            format_duration(row["earned_seconds"]),
        )
    console.print(table)
    console.print(f"[dim]{workout_mode.display_name}: {workout_mode.description}[/dim]")


if __name__ == "__main__":
    cli()
