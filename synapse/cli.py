"""
Synapse CLI: review vocabulary from the terminal.

Commands:
    synapse add <learner> <term>      - Add a word to a learner's collection
    synapse review <item> <quality>   - Submit a review (quality 0-5)
    synapse due <learner>             - Show words due for review
    synapse stats <learner>           - Show learner statistics
    synapse stage <item> <stage>      - Set a word's mastery stage
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from synapse.config import get_settings
from synapse.core.mastery import MasteryStage
from synapse.delivery.analytics import AnalyticsService
from synapse.delivery.review_service import ReviewService, format_interval
from synapse.delivery.state_store import ConcurrentUpdateError, ItemNotFoundError, StateStore
from synapse.srs.state import InvalidQuality

console = Console()

app = typer.Typer(
    name="synapse",
    help="Spaced repetition review for your vocabulary",
    no_args_is_help=True,
)


@app.callback()
def _main(
    ctx: typer.Context,
    db: Path = typer.Option(None, "--db", help="SQLite state file (defaults to settings)"),
) -> None:
    """Remember which state file the invoked command should open."""
    ctx.obj = db or get_settings().state_db_path


def _open_store(ctx: typer.Context) -> StateStore:
    """Open the state store for the current command; closed when the command exits."""
    store = StateStore(ctx.obj)
    ctx.call_on_close(store.close)
    return store


def _fail(message: str) -> NoReturn:
    rprint(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=1)


@app.command("add")
def add_word(
    ctx: typer.Context,
    learner_id: int = typer.Argument(..., help="Learner id"),
    term: str = typer.Argument(..., help="Word to learn"),
    definition: str = typer.Option("", "--definition", "-d", help="Meaning of the word"),
) -> None:
    """Add a word with a fresh review schedule."""
    item = _open_store(ctx).add_item(learner_id, term, definition)
    rprint(f"[green]Added[/green] #{item.id} {item.term} (due now)")


@app.command("review")
def review_word(
    ctx: typer.Context,
    item_id: int = typer.Argument(..., help="Item id"),
    quality: int = typer.Argument(..., help="Recall quality 0 (blackout) - 5 (perfect)"),
) -> None:
    """Submit a review and schedule the next one."""
    service = ReviewService(_open_store(ctx))
    try:
        response = service.submit_review(item_id, quality)
    except (InvalidQuality, ItemNotFoundError, ConcurrentUpdateError) as e:
        _fail(str(e))

    state = response.item.state
    rprint(response.message)
    rprint(
        f"[dim]ease={state.ease_factor:.2f} reps={state.repetition_count} "
        f"next={state.next_review_at:%Y-%m-%d %H:%M}[/dim]"
    )


@app.command("due")
def due_words(
    ctx: typer.Context,
    learner_id: int = typer.Argument(..., help="Learner id"),
    limit: int = typer.Option(None, "--limit", "-n", help="Maximum words to show"),
) -> None:
    """Show words due for review, never-reviewed first."""
    items = ReviewService(_open_store(ctx)).due_items(learner_id, limit=limit)
    if not items:
        rprint("[green]Nothing due. See you later![/green]")
        return

    table = Table(title=f"Due for review ({len(items)})")
    table.add_column("ID", justify="right")
    table.add_column("Word", style="cyan")
    table.add_column("Stage")
    table.add_column("Ease", justify="right")
    table.add_column("Scheduled")

    for item in items:
        stage = item.mastery_stage
        scheduled = (
            "new" if item.state.next_review_at is None else f"{item.state.next_review_at:%Y-%m-%d}"
        )
        table.add_row(
            str(item.id),
            item.term,
            f"[{stage.color}]{stage.emoji} {stage.display_name}[/{stage.color}]",
            f"{item.state.ease_factor:.2f}",
            scheduled,
        )

    console.print(table)


@app.command("stats")
def learner_stats(
    ctx: typer.Context,
    learner_id: int = typer.Argument(..., help="Learner id"),
) -> None:
    """Show review statistics and the most challenging words."""
    settings = get_settings()
    analytics = AnalyticsService(_open_store(ctx), settings.get_excluded_stages())
    stats = analytics.learner_stats(learner_id)

    table = Table(title="Learner Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Words", str(stats.total_words))
    for stage, count in stats.words_by_stage.items():
        table.add_row(f"[{stage.color}]{stage.display_name}[/{stage.color}]", str(count))
    table.add_row("Due Today", str(stats.words_due_today))
    table.add_row("Average Ease", f"{stats.average_ease_factor:.2f}")
    table.add_row("Total Reviews", str(stats.total_reviews))

    console.print(table)

    hardest = analytics.challenging_words(learner_id, settings.challenging_words_limit)
    if hardest:
        table = Table(title="Most Challenging Words")
        table.add_column("Word", style="cyan")
        table.add_column("Ease", justify="right")
        table.add_column("Streak", justify="right")
        for word in hardest:
            table.add_row(word.term, f"{word.ease_factor:.2f}", str(word.repetition_count))
        console.print(table)


@app.command("stage")
def set_stage(
    ctx: typer.Context,
    item_id: int = typer.Argument(..., help="Item id"),
    stage: str = typer.Argument(..., help="ghost, liquid or solid"),
) -> None:
    """Set a word's mastery stage (solid words are never due)."""
    try:
        item = _open_store(ctx).set_mastery_stage(item_id, MasteryStage.parse(stage))
    except (ValueError, ItemNotFoundError) as e:
        _fail(str(e))

    rprint(f"#{item.id} {item.term} is now {item.mastery_stage.display_name}")
    if item.state.next_review_at is not None:
        rprint(f"[dim]Current interval: {format_interval(item.state.interval_days)}[/dim]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
