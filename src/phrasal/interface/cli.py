"""Phrasal CLI: phrase management, interactive study, stats and the server."""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer

from phrasal.application.config import AppConfig, build_session_config, resolve_config
from phrasal.domain.errors import ProviderFailure, StudyError
from phrasal.domain.models import SessionPhase, SessionType

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="phrasal: Spaced-repetition study sessions for saved phrases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage phrasal configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def _log_level(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only show warnings.")] = False,
):
    """Global settings for phrasal."""
    ctx.ensure_object(dict)
    level = 0 if quiet else 1 + verbose
    ctx.obj["verbose"] = level
    logging.getLogger().setLevel(_log_level(level))


def _config(ctx: typer.Context, **overrides) -> AppConfig:
    overrides.setdefault("verbose", (ctx.obj or {}).get("verbose"))
    return resolve_config(overrides)


def _attach_file_log(config: AppConfig) -> None:
    """Mirror log records into <log_dir>/phrasal.log for later inspection."""
    path = config.log_dir / "phrasal.log"
    package_logger = logging.getLogger("phrasal")
    if any(getattr(h, "baseFilename", None) == str(path) for h in package_logger.handlers):
        return

    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))
    package_logger.addHandler(handler)


def _fail(message: str, code: int = 1):
    typer.secho(message, fg="red", err=True)
    raise typer.Exit(code)


# ---------------------------------------------------------------------------
# Phrase commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    text: Annotated[str, typer.Argument(help="The phrase to study.")],
    translation: Annotated[
        str | None, typer.Option("--translation", "-t", help="Translation or gloss.")
    ] = None,
    context: Annotated[
        str | None, typer.Option("--context", "-c", help="Sentence the phrase came from.")
    ] = None,
    user: Annotated[str | None, typer.Option(help="User id. Defaults to config.")] = None,
):
    """[bold green]Add[/bold green] a phrase to your study list."""
    from phrasal.application.factory import get_store

    config = _config(ctx, user_id=user)
    try:
        phrase = get_store(config).add_phrase(config.user_id, text, translation, context)
    except StudyError as e:
        _fail(str(e))
    typer.secho(f"Added {phrase.id}: {phrase.text}", fg="green")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="YAML file with a list of phrases.")],
    user: Annotated[str | None, typer.Option(help="User id. Defaults to config.")] = None,
):
    """Import phrases from a YAML file."""
    from phrasal.application.factory import get_store
    from phrasal.application.importer import PhraseFileError, import_phrases

    config = _config(ctx, user_id=user)
    try:
        added = import_phrases(get_store(config), config.user_id, path)
    except (PhraseFileError, StudyError) as e:
        _fail(str(e))
    typer.secho(f"Imported {len(added)} phrases.", fg="green")


@app.command()
def due(
    ctx: typer.Context,
    user: Annotated[str | None, typer.Option(help="User id. Defaults to config.")] = None,
    limit: Annotated[int | None, typer.Option(help="Maximum phrases to list.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List phrases due for review, in study order."""
    from phrasal.application.factory import get_store

    config = _config(ctx, user_id=user)
    store = get_store(config)
    try:
        items = asyncio.run(store.fetch_due_items(config.user_id, limit or config.max_items))
    except StudyError as e:
        _fail(str(e))

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": item.phrase.id,
                        "text": item.phrase.text,
                        "translation": item.phrase.translation,
                        "next_review_at": (
                            item.schedule.next_review_at.isoformat() if item.schedule else None
                        ),
                    }
                    for item in items
                ],
                indent=2,
            )
        )
        return

    if not items:
        typer.secho("Nothing due.", fg="green")
        return

    typer.echo(f"Due phrases: {len(items)}")
    for item in items:
        label = "new" if item.schedule is None else item.schedule.next_review_at.date().isoformat()
        gloss = f"  ({item.phrase.translation})" if item.phrase.translation else ""
        typer.echo(f"  [{label}] {item.phrase.text}{gloss}")


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


def _prompt_grade(prompt: str, allow_skip: bool) -> str:
    choices = "1-4, s=skip, q=end drill" if allow_skip else "1-4"
    while True:
        answer = typer.prompt(f"{prompt} [{choices}]").strip().lower()
        if answer in {"1", "2", "3", "4"}:
            return answer
        if allow_skip and answer in {"s", "q"}:
            return answer
        typer.secho("Please enter a grade from 1 (again) to 4 (easy).", fg="yellow")


async def run_study_session(orchestrator, session_config) -> None:
    """Interactive loop over the session phases."""
    session = await orchestrator.start_session(session_config)
    typer.secho(f"Session {session.id}: {session.total_items} phrases", fg="cyan")

    for exercise in orchestrator.drill_exercises:
        typer.echo(f"  Warm-up: {exercise.text}")

    while orchestrator.phase is SessionPhase.DRILLING:
        item = orchestrator.get_next_item()
        if item is None:
            orchestrator.end_drill()
            break

        typer.echo("")
        typer.secho(item.phrase.text, bold=True)
        if item.phrase.context:
            typer.echo(f"  {item.phrase.context}")
        started = time.monotonic()
        typer.prompt("Press Enter to reveal", default="", show_default=False)
        if item.phrase.translation:
            typer.echo(f"  -> {item.phrase.translation}")

        answer = _prompt_grade("Grade", allow_skip=True)
        if answer == "s":
            orchestrator.skip_item(item.id)
            continue
        if answer == "q":
            orchestrator.end_drill()
            break

        try:
            await orchestrator.submit_grade(item.id, int(answer), time.monotonic() - started)
        except ProviderFailure as e:
            typer.secho(f"Saved locally, will retry: {e}", fg="yellow")
        typer.echo(f"Progress: {orchestrator.get_session_progress()}%")

    if orchestrator.phase is SessionPhase.REVIEWING:
        typer.echo("\nGenerating review story...")
        narrative = await orchestrator.generate_narrative()
        if narrative is not None:
            typer.echo("")
            typer.echo(narrative.text)
            for ref in narrative.item_references:
                if ref.gloss:
                    typer.echo(f"  * {ref.phrase}: {ref.gloss}")

    if orchestrator.phase is SessionPhase.GRADING:
        answer = _prompt_grade("How well did you follow the story?", allow_skip=False)
        try:
            await orchestrator.apply_bulk_grade(int(answer))
        except ProviderFailure as e:
            typer.secho(f"Saved locally, will retry: {e}", fg="yellow")

    if orchestrator.has_unsynced_reviews:
        written = await orchestrator.flush_unsynced()
        if orchestrator.has_unsynced_reviews:
            typer.secho(
                f"{len(orchestrator.unsynced_reviews)} reviews could not be saved.", fg="red"
            )
        elif written:
            typer.secho(f"Saved {written} pending reviews.", fg="green")

    final = await orchestrator.complete_session()
    typer.echo("")
    typer.secho("Session complete", fg="green", bold=True)
    typer.echo(f"Reviewed: {final.completed_items}/{final.total_items}")
    typer.echo(f"Correct: {final.correct_items}")
    typer.echo(f"Average grade: {final.average_grade:.2f}")
    typer.echo(f"Duration: {final.duration_seconds}s")


@app.command()
def study(
    ctx: typer.Context,
    user: Annotated[str | None, typer.Option(help="User id. Defaults to config.")] = None,
    max_items: Annotated[int | None, typer.Option(help="Maximum phrases this session.")] = None,
    session_type: Annotated[
        SessionType | None, typer.Option("--type", help="Session type.")
    ] = None,
    drill: Annotated[
        bool | None, typer.Option("--drill/--no-drill", help="Include the drill phase.")
    ] = None,
    narrative: Annotated[
        bool | None,
        typer.Option("--narrative/--no-narrative", help="Include the narrative review."),
    ] = None,
):
    """Run an interactive [bold]study session[/bold]."""
    from phrasal.application.factory import get_orchestrator

    config = _config(ctx, user_id=user)
    session_config = build_session_config(
        config,
        max_items=max_items,
        session_type=session_type,
        include_drill=drill,
        include_narrative=narrative,
    )
    _attach_file_log(config)
    orchestrator = get_orchestrator(config)

    try:
        asyncio.run(run_study_session(orchestrator, session_config))
    except StudyError as e:
        _fail(str(e))


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@app.command()
def stats(
    ctx: typer.Context,
    user: Annotated[str | None, typer.Option(help="User id. Defaults to config.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show review statistics."""
    from dataclasses import asdict

    from phrasal.application.factory import get_stats_service
    from phrasal.application.stats.metrics_calculator import calculate_progress

    config = _config(ctx, user_id=user)
    try:
        result = asyncio.run(get_stats_service(config).get_user_stats(config.user_id))
    except StudyError as e:
        _fail(str(e))

    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    typer.echo(f"Phrases: {result.total_phrases}  Mastered: {result.mastered_phrases}")
    typer.echo(f"Mastery: {calculate_progress(result.total_phrases, result.mastered_phrases)}%")
    typer.echo(f"Reviews: {result.total_reviews}  Average grade: {result.average_grade:.2f}")
    typer.echo(f"Retention: {result.retention_rate:.1f}%")
    typer.echo(f"Due: {result.due_count}  Overdue: {result.overdue_count}")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8777,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes.")] = False,
):
    """Start the phrasal HTTP server."""
    import uvicorn

    typer.secho(f"Starting phrasal server on http://{host}:{port}", fg="green")
    uvicorn.run("phrasal.server:app", host=host, port=port, reload=reload)


@app.command()
def logs():
    """Open the log directory."""
    import os
    import subprocess

    config = resolve_config()
    if not config.log_dir.exists():
        config.log_dir.mkdir(parents=True, exist_ok=True)

    if sys.platform == "darwin":
        subprocess.run(["open", str(config.log_dir)])
    elif sys.platform == "win32":
        os.startfile(str(config.log_dir))
    else:
        subprocess.run(["xdg-open", str(config.log_dir)])


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("llm_api_key"):
        d["llm_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2, default=str))


if __name__ == "__main__":
    app()
