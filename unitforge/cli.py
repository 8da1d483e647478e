"""
Typer CLI for unitforge.

Commands:
    unitforge generate TOPIC     - Generate a validated unit (two-phase or --legacy)
    unitforge outline TOPIC      - Print the step plan only
    unitforge activity KIND FILE - Generate one activity from a source file
    unitforge normalize FILE     - Normalize a JSON array of raw items
    unitforge validate FILE      - Validate a saved unit document

Usage:
    unitforge generate "The water cycle" --band elementary --length short -o unit.json
    unitforge generate "Volcanoes" --source notes.txt --mode exam
    unitforge validate unit.json --offline
"""
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config import get_settings
from unitforge.content.document import AudienceBand, GeneratedDocument, GenerationMode, LengthTier
from unitforge.content.normalizer import BlockNormalizer
from unitforge.errors import WorkflowExhaustedError
from unitforge.generation.activities import ActivityGenerator, ActivityKind
from unitforge.generation.assembler import UnitGenerator
from unitforge.generation.monolithic import MonolithicUnitGenerator
from unitforge.generation.outline import OutlineGenerator
from unitforge.llm.transport import create_transport
from unitforge.validation.autofix import AutoFixEngine
from unitforge.validation.result import ValidationResult
from unitforge.validation.validator import ContentValidator
from unitforge.workflow import SafeGenerationWorkflow

app = typer.Typer(
    help="unitforge: generate, normalize and validate LLM-built learning units",
    no_args_is_help=True,
)
console = Console()


def _read_source(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    if not path.exists():
        console.print(f"[red]Source file not found:[/red] {path}")
        raise typer.Exit(code=1)
    return path.read_text(encoding="utf-8")


def _load_json(path: Path):
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}:[/red] {e}")
        raise typer.Exit(code=1)


def _write_json(data: dict, output: Optional[Path]) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output is None:
        console.print_json(text)
    else:
        output.write_text(text, encoding="utf-8")
        console.print(f"[green]Wrote[/green] {output}")


def _document_table(document: GeneratedDocument) -> Table:
    table = Table(title=document.title)
    table.add_column("Step", justify="right")
    table.add_column("Title")
    table.add_column("Bloom")
    table.add_column("Blocks")

    for step in document.steps:
        kinds = ", ".join(b.type.value for b in step.blocks)
        table.add_row(str(step.step_number), step.title, step.bloom_level or "-", kinds)
    return table


def _validation_table(result: ValidationResult) -> Table:
    table = Table(title=f"Validation: {result.status.value}")
    table.add_column("Location")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Description")

    for issue in result.issues:
        color = "red" if issue.severity.value == "error" else "yellow"
        table.add_row(
            issue.location,
            f"[{color}]{issue.severity.value}[/{color}]",
            issue.issue_type,
            issue.description,
        )
    return table


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Unit topic"),
    source: Optional[Path] = typer.Option(None, "--source", "-s", help="Source text file"),
    band: Optional[AudienceBand] = typer.Option(None, "--band", "-b", help="Audience band"),
    length: Optional[LengthTier] = typer.Option(None, "--length", "-l", help="short=3, medium=5, long=7 steps"),
    mode: Optional[GenerationMode] = typer.Option(None, "--mode", "-m", help="learning, exam or game"),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Auto-fix attempts"),
    legacy: bool = typer.Option(False, "--legacy", help="Use the single-call generator"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the document JSON here"),
) -> None:
    """Generate a unit and run it through the validate/auto-fix workflow."""
    settings = get_settings()
    band = band or AudienceBand(settings.default_audience_band)
    length = length or LengthTier(settings.default_length_tier)
    mode = mode or GenerationMode(settings.default_mode)
    source_text = _read_source(source)

    transport = create_transport(settings)
    if legacy:
        generation_fn = MonolithicUnitGenerator(transport).generation_fn(
            topic, source_text, band, item_count=length.step_count
        )
    else:
        generation_fn = UnitGenerator(transport).generation_fn(topic, source_text, band, length, mode)

    workflow = SafeGenerationWorkflow(
        ContentValidator(transport),
        AutoFixEngine(transport),
        max_retries=max_retries,
    )

    with console.status(f"Generating '{topic}'..."):
        try:
            document = asyncio.run(workflow.run(generation_fn, band))
        except WorkflowExhaustedError as e:
            console.print(f"[red]{e}[/red]")
            if e.history:
                console.print(_validation_table(e.history[-1]))
            raise typer.Exit(code=1)

    console.print(_document_table(document))
    if document.skipped_steps:
        console.print(f"[yellow]Skipped steps:[/yellow] {list(document.skipped_steps)}")
    _write_json(document.to_dict(), output)


@app.command()
def outline(
    topic: str = typer.Argument(..., help="Unit topic"),
    source: Optional[Path] = typer.Option(None, "--source", "-s", help="Source text file"),
    band: Optional[AudienceBand] = typer.Option(None, "--band", "-b"),
    length: Optional[LengthTier] = typer.Option(None, "--length", "-l"),
    mode: Optional[GenerationMode] = typer.Option(None, "--mode", "-m"),
) -> None:
    """Generate and print the step plan only."""
    settings = get_settings()
    generator = OutlineGenerator(create_transport(settings))
    skeleton = asyncio.run(
        generator.generate_outline(
            topic,
            source_text=_read_source(source),
            audience_band=band or AudienceBand(settings.default_audience_band),
            length_tier=length or LengthTier(settings.default_length_tier),
            mode=mode or GenerationMode(settings.default_mode),
        )
    )
    if skeleton is None:
        console.print("[red]Outline generation failed[/red]")
        raise typer.Exit(code=1)

    table = Table(title=skeleton.title)
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Bloom")
    table.add_column("Interaction")
    table.add_column("Focus")
    for step in skeleton.steps:
        table.add_row(
            str(step.index), step.title, step.cognitive_level, step.suggested_interaction_type, step.narrative_focus
        )
    console.print(table)


@app.command()
def activity(
    kind: ActivityKind = typer.Argument(..., help="Activity type"),
    source: Path = typer.Argument(..., help="Source text file"),
    band: Optional[AudienceBand] = typer.Option(None, "--band", "-b"),
    topic: Optional[str] = typer.Option(None, "--topic", "-t"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    """Generate a single activity block from a source file."""
    settings = get_settings()
    generator = ActivityGenerator(create_transport(settings))
    block = asyncio.run(
        generator.generate(
            kind,
            _read_source(source) or "",
            audience_band=band or AudienceBand(settings.default_audience_band),
            topic=topic,
        )
    )
    if block is None:
        console.print(f"[red]Could not generate a valid {kind.value} activity[/red]")
        raise typer.Exit(code=1)
    _write_json(block.to_dict(), output)


@app.command()
def normalize(
    path: Path = typer.Argument(..., help="JSON file with a raw item or an array of raw items"),
    lenient: bool = typer.Option(False, "--lenient", help="Default unresolved answers to the first option"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    """Normalize raw LLM items into content blocks."""
    data = _load_json(path)
    items = data if isinstance(data, list) else [data]

    normalizer = BlockNormalizer(strict_answers=False if lenient else None)
    blocks = normalizer.normalize_many(items)

    table = Table(title=f"Normalized {path.name}")
    table.add_column("Type")
    table.add_column("Score", justify="right")
    table.add_column("Id")
    for block in blocks:
        table.add_row(block.type.value, str(block.metadata.score), block.id)
    console.print(table)
    console.print(f"[green]{len(blocks)} accepted[/green], [red]{len(items) - len(blocks)} rejected[/red]")

    if output is not None:
        _write_json({"blocks": [b.to_dict() for b in blocks]}, output)


@app.command()
def validate(
    path: Path = typer.Argument(..., help="Unit document JSON"),
    band: Optional[AudienceBand] = typer.Option(None, "--band", "-b", help="Override the document's band"),
    offline: bool = typer.Option(False, "--offline", help="Run local rules only, no LLM audit"),
) -> None:
    """Validate a saved unit document."""
    try:
        document = GeneratedDocument.from_dict(_load_json(path))
    except (ValueError, KeyError, TypeError) as e:
        console.print(f"[red]Not a valid unit document:[/red] {e}")
        raise typer.Exit(code=1)

    transport = None if offline else create_transport(get_settings())
    result = asyncio.run(ContentValidator(transport, use_llm=not offline).validate(document, band))

    console.print(_validation_table(result))
    if result.metrics.readability_score is not None:
        console.print(f"Readability: {result.metrics.readability_score}")
    if not result.passed:
        raise typer.Exit(code=1)


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)

    app()


if __name__ == "__main__":
    main()
