"""
Sprintwise CLI - operator commands for the progression engine.

Usage:
    sprintwise init-db                         # Create tables
    sprintwise status OBJECTIVE_ID             # Generation status and buffer
    sprintwise maintain-buffer OBJECTIVE_ID    # Top up look-ahead sprints
    sprintwise analyze OBJECTIVE_ID            # Performance and pacing analysis
    sprintwise generate OBJECTIVE_ID -n 3      # Generate a batch of sprints
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sprintwise.config import get_settings
from sprintwise.core.errors import ProgressionError
from sprintwise.core.logging import configure_logging
from sprintwise.core.models import Sprint
from sprintwise.db.database import dispose_engine, get_async_engine, init_db
from sprintwise.engine import ProgressionEngine, build_engine

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="sprintwise",
    help="Sprintwise - adaptive sprint progression engine",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


def _run(coro) -> None:
    """Run a command coroutine, reporting engine errors without a traceback."""

    async def runner():
        try:
            return await coro
        finally:
            await dispose_engine()

    try:
        asyncio.run(runner())
    except ProgressionError as e:
        console.print(f"[red]{type(e).__name__}:[/] {e.message}")
        raise typer.Exit(code=1) from e


def _sprint_table(sprints: list[Sprint], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Day", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Difficulty")
    table.add_column("Hours", justify="right")
    table.add_column("Review", justify="center")
    for sprint in sprints:
        table.add_row(
            str(sprint.day_number),
            sprint.title,
            sprint.difficulty,
            f"{sprint.total_estimated_hours:.1f}",
            "yes" if sprint.is_review_sprint else "",
        )
    return table


# =============================================================================
# Commands
# =============================================================================


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables."""

    async def _init() -> None:
        await init_db(get_async_engine())

    _run(_init())
    console.print("[green]Database initialized[/]")


@app.command()
def status(
    objective_id: Annotated[str, typer.Argument(help="Objective ID")],
) -> None:
    """Show sprint generation status for an objective."""

    async def _status(engine: ProgressionEngine) -> None:
        result = await engine.sequencer.get_generation_status(objective_id)
        check = await engine.sequencer.should_generate_next(objective_id)
        console.print(
            Panel(
                f"Current day: [bold]{result.current_day}[/]\n"
                f"Last generated day: [bold]{result.last_generated_day}[/]\n"
                f"Buffer days: [bold]{result.buffer_days}[/]\n"
                f"Generating: {'yes' if result.is_generating else 'no'}\n"
                f"Next sprint ready: {'yes' if result.next_sprint_ready else 'no'}\n"
                f"Auto-generate next: {check.reason}",
                title=f"Objective {objective_id}",
                border_style="cyan",
            )
        )

    _run(_status(build_engine()))


@app.command("maintain-buffer")
def maintain_buffer(
    objective_id: Annotated[str, typer.Argument(help="Objective ID")],
) -> None:
    """Generate look-ahead sprints when the buffer is low."""

    async def _maintain(engine: ProgressionEngine) -> None:
        sprints = await engine.sequencer.maintain_sprint_buffer(objective_id)
        if not sprints:
            console.print("[dim]Buffer is sufficient; nothing generated[/]")
            return
        console.print(_sprint_table(sprints, "Generated sprints"))

    _run(_maintain(build_engine()))


@app.command()
def analyze(
    objective_id: Annotated[str, typer.Argument(help="Objective ID")],
    recent: Annotated[int, typer.Option("--recent", "-r", help="Sprints to analyze")] = 5,
    apply: Annotated[
        bool, typer.Option("--apply", help="Apply the pacing recalibration")
    ] = False,
) -> None:
    """Analyze recent performance and recommend a pacing change."""

    async def _analyze(engine: ProgressionEngine) -> None:
        objective = await engine.repository.get_objective(objective_id)
        if objective is None:
            console.print(f"[red]Objective {objective_id} not found[/]")
            raise typer.Exit(code=1)

        analysis = await engine.analyzer.analyze_performance(objective.user_id, objective_id, recent)
        table = Table(title="Performance")
        table.add_column("Metric", style="cyan")
        table.add_column("Value")
        table.add_row("Scores", ", ".join(f"{s:.0f}" for s in analysis.scores) or "-")
        table.add_row("Average", f"{analysis.average_score:.1f}")
        table.add_row("Trend", analysis.trend.value)
        table.add_row("Recommended", analysis.recommended_action.value)
        table.add_row("Struggling", ", ".join(analysis.struggling_skills) or "-")
        table.add_row("Difficulty", str(objective.current_difficulty))
        table.add_row("Velocity", f"{objective.learning_velocity:.2f}")
        console.print(table)

        recommendations = await engine.scheduler.get_review_recommendations(
            objective.user_id, objective_id
        )
        if recommendations:
            reviews = Table(title="Review Recommendations")
            reviews.add_column("Priority", style="bold")
            reviews.add_column("Type")
            reviews.add_column("Skills")
            reviews.add_column("Reason", style="dim")
            colors = {"high": "red", "medium": "yellow", "low": "green"}
            for rec in recommendations:
                reviews.add_row(
                    f"[{colors[rec.priority]}]{rec.priority}[/]",
                    rec.type,
                    ", ".join(rec.skill_ids),
                    rec.reason,
                )
            console.print(reviews)

        if apply:
            decision = await engine.analyzer.recalibrate_learning_path(objective_id, analysis)
            style = "green" if decision.should_adjust else "dim"
            console.print(f"[{style}]{decision.reasoning}[/]")

    _run(_analyze(build_engine()))


@app.command()
def generate(
    objective_id: Annotated[str, typer.Argument(help="Objective ID")],
    count: Annotated[int, typer.Option("--count", "-n", help="Sprints to generate")] = 1,
    start_day: Annotated[
        int | None, typer.Option("--start-day", "-d", help="First day (default: next day)")
    ] = None,
) -> None:
    """Generate one or more sprints for an objective."""

    async def _generate(engine: ProgressionEngine) -> None:
        objective = await engine.repository.get_objective(objective_id)
        if objective is None:
            console.print(f"[red]Objective {objective_id} not found[/]")
            raise typer.Exit(code=1)

        first_day = start_day
        if first_day is None:
            last = await engine.repository.get_last_sprint(objective_id)
            first_day = last.day_number + 1 if last else 1

        sprints = await engine.sequencer.generate_sprint_batch(
            objective_id, objective.user_id, first_day, count
        )
        if len(sprints) < count:
            console.print(f"[yellow]Generated {len(sprints)} of {count} sprints[/]")
        console.print(_sprint_table(sprints, "Generated sprints"))

    _run(_generate(build_engine()))


if __name__ == "__main__":
    app()
