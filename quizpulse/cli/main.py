"""
Typer CLI for quizpulse.

Commands:
    quizpulse db init                  - Create database tables
    quizpulse insights recompute USER  - Recompute a user's insight snapshot now
    quizpulse dashboard USER           - Show a user's dashboard
    quizpulse info                     - Show configuration
    quizpulse serve                    - Run the API server

Usage:
    quizpulse --help
    quizpulse insights recompute 3f1c... --database-url sqlite:///quizpulse.db
"""

from __future__ import annotations

from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import Settings, get_settings
from quizpulse import __version__
from quizpulse.db.database import init_db
from quizpulse.logging_setup import configure_logging
from quizpulse.services import Services, build_services

app = typer.Typer(help="quizpulse CLI: quiz attempt scoring and topic insights")
console = Console()

DatabaseUrlOption = typer.Option(
    None, "--database-url", help="Override DATABASE_URL for this command"
)


def _settings(database_url: str | None) -> Settings:
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    return settings


def _services(database_url: str | None) -> Services:
    settings = _settings(database_url)
    configure_logging(settings, file_logging=False)
    return build_services(settings, inline_insights=True)


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init(database_url: Optional[str] = DatabaseUrlOption) -> None:
    """
    Create all tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    services = _services(database_url)
    try:
        init_db(services.engine)
    finally:
        services.stop()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Insights
# ========================================

insights_app = typer.Typer(help="Topic insight snapshots")
app.add_typer(insights_app, name="insights")


@insights_app.command("recompute")
def insights_recompute(
    user_id: str = typer.Argument(..., help="User whose snapshot to rebuild"),
    database_url: Optional[str] = DatabaseUrlOption,
) -> None:
    """Recompute a user's insight snapshot synchronously."""
    services = _services(database_url)
    try:
        snapshot = services.insight_engine.run(user_id)
    except Exception as e:
        logger.error("Insight recompute failed for user {}: {}", user_id, e)
        rprint(f"[red]✗[/red] Insight recompute failed: {e}")
        raise typer.Exit(code=1)
    finally:
        services.stop()

    if snapshot is None:
        rprint(f"[yellow]⚠[/yellow] No completed attempts for user {user_id}")
        return

    table = Table(title=f"Topic Insights for {user_id}")
    table.add_column("Topic", style="cyan")
    table.add_column("Proficiency", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Class")

    for topic, proficiency in snapshot.topic_proficiency.items():
        if topic in snapshot.weak_topics:
            label = "[red]weak[/red]"
        elif topic in snapshot.strong_topics:
            label = "[green]strong[/green]"
        else:
            label = ""
        table.add_row(
            topic, str(proficiency), str(snapshot.confidence_scores.get(topic, "")), label
        )

    console.print(table)
    rprint(f"[green]✓[/green] Snapshot updated for {len(snapshot.topic_proficiency)} topics")


# ========================================
# Dashboard
# ========================================


@app.command("dashboard")
def show_dashboard(
    user_id: str = typer.Argument(..., help="User to show"),
    database_url: Optional[str] = DatabaseUrlOption,
) -> None:
    """Show recent performance, topic proficiency and badges."""
    services = _services(database_url)
    try:
        dashboard = services.dashboard.get_dashboard(user_id, user_id)
    finally:
        services.stop()

    history = Table(title="Recent Performance")
    history.add_column("Date", style="dim")
    history.add_column("Quiz", style="cyan")
    history.add_column("Score", justify="right")
    history.add_column("Correct", justify="right")
    for entry in dashboard.performance_history:
        history.add_row(
            entry.date.strftime("%Y-%m-%d %H:%M"),
            entry.quiz_id[:8],
            "" if entry.score is None else str(entry.score),
            f"{entry.correct_answers}/{entry.total_questions}",
        )
    console.print(history)

    if dashboard.topic_proficiency:
        topics = Table(title="Topic Proficiency")
        topics.add_column("Topic", style="cyan")
        topics.add_column("Proficiency", justify="right")
        topics.add_column("Confidence", justify="right")
        for topic, score in dashboard.topic_proficiency.items():
            style = "red" if topic in dashboard.weak_topics else "green" if topic in dashboard.strong_topics else ""
            topics.add_row(
                topic,
                f"[{style}]{score}[/{style}]" if style else str(score),
                str(dashboard.confidence_scores.get(topic, "")),
            )
        console.print(topics)
    else:
        rprint("[yellow]⚠[/yellow] No insights yet")

    if dashboard.badges:
        rprint("[bold]Badges:[/bold] " + ", ".join(b.name for b in dashboard.badges))


# ========================================
# Info / Server
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="quizpulse Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row(
        "Database URL",
        settings.database_url.split("@")[-1] if "@" in settings.database_url else settings.database_url,
    )
    table.add_row("Log Level", settings.log_level)
    table.add_row("Answer Match Mode", settings.answer_match_mode)
    table.add_row("Insight Workers", str(settings.insight_workers))
    for key, value in settings.get_insight_config().items():
        table.add_row(f"Insight {key}", str(value))

    console.print(table)


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: API_PORT)"),
) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "quizpulse.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]quizpulse[/bold] v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
