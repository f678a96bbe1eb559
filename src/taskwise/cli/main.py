"""Main CLI application entry point."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import NoReturn, TypeVar

import typer
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..ai.client import AIClientAdapter
from ..ai.enrichment_service import EnrichmentService
from ..core.config import get_app_config
from ..core.exceptions import TaskwiseError
from ..core.patterns import analyze_patterns, day_name
from ..models import (
    EnrichmentRequest,
    EnrichmentResult,
    EnrichmentSource,
    NoteRecord,
    ParsedTaskDraft,
    TaskRecord,
)

VERSION = "0.1.0"

console = Console()
app = typer.Typer(
    name="taskwise",
    help="AI-assisted task and note enrichment with keyword fallbacks",
    add_completion=False,
    no_args_is_help=True,
)

RecordT = TypeVar("RecordT", bound=BaseModel)

JSON_OPTION = typer.Option(False, "--json", help="Print raw JSON output")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Override TASKWISE_LOG_LEVEL"
    ),
) -> None:
    """AI-assisted task and note enrichment."""
    config = get_app_config()
    level = log_level or ("DEBUG" if config.debug else config.log_level)
    _configure_logging(level.upper())


def build_service() -> EnrichmentService:
    """Service wired to the environment configuration."""
    return EnrichmentService(get_app_config())


def _fail(message: str) -> NoReturn:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def _run(coro):
    try:
        return asyncio.run(coro)
    except TaskwiseError as e:
        _fail(str(e))


def _parse_due(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        _fail(f"Invalid due date: {value} (expected ISO format, e.g. 2025-01-31T17:00)")


def _load_records(path: Path, model: type[RecordT], key: str) -> list[RecordT]:
    """Read a JSON export: a list of records or an object holding one under ``key``."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        _fail(f"Cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}")

    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        _fail(f"{path} must contain a list of {key}")

    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        _fail(f"Invalid {key} in {path}: {e.error_count()} error(s)\n{e}")


def _print_json(value) -> None:
    if isinstance(value, list):
        console.print_json(json.dumps([item.model_dump(mode="json") for item in value]))
    else:
        console.print_json(value.model_dump_json())


def _source_label(source: EnrichmentSource) -> str:
    if source == EnrichmentSource.EXTERNAL_AI:
        return "[green]external AI[/green]"
    return "[yellow]keyword heuristics[/yellow]"


def _display_enrichment(result: EnrichmentResult) -> None:
    """Display an enrichment result as a table."""
    table = Table(title="Task Enrichment", show_header=True, header_style="bold blue")
    table.add_column("Aspect", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_column("Confidence", style="green", justify="right")

    table.add_row("Category", result.category, f"{result.category_confidence:.1%}")
    table.add_row("Priority", result.priority.value, f"{result.priority_confidence:.1%}")
    table.add_row("Estimate", f"{result.estimated_minutes}min", "")

    console.print(table)
    console.print(f"[dim]Source: {_source_label(result.source)}[/dim]")
    if result.reasoning:
        console.print(f"\n[dim]Reasoning: {result.reasoning}[/dim]")


def _display_draft(draft: ParsedTaskDraft) -> None:
    table = Table(title="Parsed Task", show_header=False)
    table.add_column("Field", style="cyan", width=15)
    table.add_column("Value", style="white")

    table.add_row("Title", draft.title)
    if draft.description:
        table.add_row("Description", draft.description)
    table.add_row("Type", draft.type.value)
    table.add_row("Due", draft.due_date.isoformat() if draft.due_date else "-")
    table.add_row("Category", draft.category)
    table.add_row("Priority", draft.priority.value)
    table.add_row("Estimate", f"{draft.estimated_minutes}min")
    table.add_row("Confidence", f"{draft.confidence:.1%}")

    console.print(table)
    console.print(f"[dim]Source: {_source_label(draft.source)}[/dim]")


@app.command("version")
def version() -> None:
    """Show application version."""
    console.print(f"taskwise version {VERSION}")


@app.command("status")
def status(
    check: bool = typer.Option(
        False, "--check", help="Send a health check request to each provider"
    ),
) -> None:
    """Show which external AI services are configured."""
    config = get_app_config()
    adapter = AIClientAdapter(config.ai)

    table = Table(title="AI Services", show_header=False)
    table.add_column("Field", style="cyan", width=22)
    table.add_column("Value", style="white")

    table.add_row("AI enabled", "✓ Yes" if config.ai.enable_ai else "✗ No")
    table.add_row("OpenAI", f"{config.ai.openai_model}" if config.ai.openai_api_key else "✗ No key")
    table.add_row(
        "Anthropic",
        f"{config.ai.anthropic_model}" if config.ai.anthropic_api_key else "✗ No key",
    )
    table.add_row("Default provider", config.ai.default_provider.value)
    table.add_row(
        "Inference endpoint",
        config.ai.inference_base_url if config.ai.inference_api_key else "✗ No key",
    )
    table.add_row("Generation available", "✓" if adapter.generation_available else "✗")
    table.add_row("Inference available", "✓" if adapter.inference_available else "✗")
    console.print(table)

    if check and adapter.generation_available:
        results = asyncio.run(adapter.provider_manager.check_all())
        for provider, healthy in results.items():
            mark = "[green]✓ healthy[/green]" if healthy else "[red]✗ unreachable[/red]"
            console.print(f"  • {provider.value}: {mark}")


@app.command("parse")
def parse(
    text: str,
    stream: bool = typer.Option(False, "--stream", "-s", help="Stream model output"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Turn a natural language sentence into a structured task."""
    service = build_service()

    if stream:

        async def consume() -> ParsedTaskDraft:
            draft = None
            async for event in service.parse_natural_language_task_streaming(text):
                if event.kind == "chunk" and not as_json:
                    console.print(event.text, end="", markup=False, highlight=False)
                elif event.kind == "complete":
                    draft = event.draft
            return draft

        draft = _run(consume())
        if not as_json:
            console.print()
    else:
        draft = _run(service.parse_natural_language_task(text))

    if as_json:
        _print_json(draft)
    else:
        _display_draft(draft)


@app.command("enrich")
def enrich(
    title: str,
    description: str | None = typer.Option(None, "--desc", "-d", help="Task description"),
    due: str | None = typer.Option(None, "--due", help="Due date (ISO format)"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Suggest category, priority and time estimate for a task."""
    try:
        request = EnrichmentRequest(
            title=title, description=description, due_date=_parse_due(due)
        )
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "task"
        _fail(f"Invalid {field}: {error['msg']}")

    result = _run(build_service().enrich_task(request))
    if as_json:
        _print_json(result)
    else:
        _display_enrichment(result)


@app.command("classify")
def classify(
    title: str,
    description: str | None = typer.Option(None, "--desc", "-d", help="Task description"),
    due: str | None = typer.Option(None, "--due", help="Due date (ISO format)"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Score category and priority with the classification and sentiment models."""
    result = _run(
        build_service().categorize_and_prioritize(title, description or "", _parse_due(due))
    )
    if as_json:
        _print_json(result)
    else:
        _display_enrichment(result)


@app.command("note")
def note(
    title: str,
    content: str,
    as_json: bool = JSON_OPTION,
) -> None:
    """Summarize and classify a note."""
    analysis = _run(build_service().analyze_note(title, content))
    if as_json:
        _print_json(analysis)
        return

    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print(analysis.summary)
    console.print(
        f"[dim]Category: {analysis.suggested_category} • Sentiment: {analysis.sentiment}"
        f" • Mood: {analysis.mood} • {analysis.reading_time} min read"
        f" • {analysis.complexity}[/dim]"
    )
    if analysis.suggested_tags:
        console.print(f"Tags: {', '.join(analysis.suggested_tags)}")
    for point in analysis.key_points:
        console.print(f"  • {point}")
    if analysis.insights:
        console.print(f"\n[dim]{analysis.insights}[/dim]")
    console.print(f"[dim]Source: {_source_label(analysis.source)}[/dim]")


@app.command("voice")
def voice(
    text: str,
    language: str = typer.Option("en", "--language", "-L", help="Transcription language"),
    enhance: bool = typer.Option(
        False, "--enhance", help="Only fix punctuation and capitalization"
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """Clean up a voice transcription."""
    service = build_service()
    if enhance:
        enhanced = _run(service.enhance_transcription(text))
        if as_json:
            console.print_json(json.dumps({"enhancedText": enhanced}))
        else:
            console.print(enhanced)
        return

    result = _run(service.process_voice_note(text, language))
    if as_json:
        _print_json(result)
        return

    console.print(f"\n[bold cyan]{result.suggested_title}[/bold cyan]")
    console.print(result.cleaned_text)
    console.print(
        f"[dim]{result.word_count} words • {result.original_length} → "
        f"{result.cleaned_length} chars • confidence {result.confidence:.0%}[/dim]"
    )
    if result.improvements:
        console.print(f"[dim]{result.improvements}[/dim]")


@app.command("patterns")
def patterns(file: Path, as_json: bool = JSON_OPTION) -> None:
    """Show weekday habits, category frequency and completion times."""
    summary = analyze_patterns(_load_records(file, TaskRecord, "tasks"))
    if as_json:
        _print_json(summary)
        return

    weekly = Table(title="Categories by Weekday", show_header=True, header_style="bold blue")
    weekly.add_column("Day", style="cyan")
    weekly.add_column("Categories", style="white")
    for weekday, categories in summary.weekly_category_presence.items():
        weekly.add_row(day_name(weekday), ", ".join(sorted(categories)))
    console.print(weekly)

    frequency = Table(title="Category Stats", show_header=True, header_style="bold blue")
    frequency.add_column("Category", style="cyan")
    frequency.add_column("Tasks", justify="right")
    frequency.add_column("Avg completion", justify="right", style="green")
    categories = sorted(
        set(summary.category_frequency) | set(summary.completion_durations)
    )
    for category in categories:
        durations = summary.completion_durations.get(category)
        average = (
            f"{round(sum(durations) / len(durations) / 60000)}min" if durations else "-"
        )
        frequency.add_row(category, str(summary.category_frequency.get(category, 0)), average)
    console.print(frequency)


@app.command("suggest")
def suggest(file: Path, as_json: bool = JSON_OPTION) -> None:
    """Suggest what to work on next."""
    suggestions = _run(
        build_service().generate_suggestions(_load_records(file, TaskRecord, "tasks"))
    )
    if as_json:
        _print_json(suggestions)
        return
    if not suggestions:
        console.print("[yellow]No suggestions right now[/yellow]")
        return

    for suggestion in suggestions:
        console.print(f"[bold]•[/bold] {suggestion.message}")
        if suggestion.recommendation:
            console.print(f"  [dim]{suggestion.recommendation}[/dim]")
        for task in suggestion.tasks:
            console.print(f"    - {task.title}")


@app.command("batch")
def batch(file: Path, as_json: bool = JSON_OPTION) -> None:
    """Re-classify a list of tasks and flag suggested updates."""
    results = _run(build_service().analyze_batch(_load_records(file, TaskRecord, "tasks")))
    if as_json:
        _print_json(results)
        return

    table = Table(title="Batch Analysis", show_header=True, header_style="bold blue")
    table.add_column("Task", style="white")
    table.add_column("Category", style="cyan")
    table.add_column("Priority", style="magenta")
    table.add_column("Update?", justify="center")
    for result in results:
        category = result.suggested_category
        if result.current_category and result.current_category != category:
            category = f"{result.current_category} → {category}"
        priority = result.suggested_priority.value
        if result.current_priority and result.current_priority != priority:
            priority = f"{result.current_priority} → {priority}"
        update = result.should_update_category or result.should_update_priority
        table.add_row(result.title, category, priority, "✓" if update else "")
    console.print(table)


@app.command("insights")
def insights(file: Path, as_json: bool = JSON_OPTION) -> None:
    """Summarize a task list."""
    result = _run(build_service().generate_insights(_load_records(file, TaskRecord, "tasks")))
    if as_json:
        _print_json(result)
        return

    console.print(
        f"[bold]{result.total_tasks} tasks[/bold], "
        f"{result.total_estimated_minutes} minutes estimated "
        f"(avg {result.average_estimated_minutes:.0f}min)"
    )
    for category, count in sorted(
        result.category_distribution.items(), key=lambda item: item[1], reverse=True
    ):
        console.print(f"  • {category}: {count}")
    for insight in result.insights:
        console.print(f"[green]→[/green] {insight}")
    for recommendation in result.recommendations:
        console.print(f"[blue]★[/blue] {recommendation}")


@app.command("search")
def search(query: str, file: Path, as_json: bool = JSON_OPTION) -> None:
    """Find the notes most relevant to a query."""
    hits = _run(build_service().search_notes(query, _load_records(file, NoteRecord, "notes")))
    if as_json:
        _print_json(hits)
        return
    if not hits:
        console.print("[yellow]No matching notes[/yellow]")
        return

    for hit in hits:
        console.print(
            f"[cyan]{hit.note.title}[/cyan] [dim]({hit.relevance_score:.2f})[/dim]"
        )
        console.print(f"  [dim]{hit.relevance_reason}[/dim]")


if __name__ == "__main__":
    app()
