"""
Rich displays for CLI operations.

This module provides progress indicators, tables and status messages for CLI
operations using the rich library. All output goes to stderr to preserve
stdout for machine-readable output.
"""

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from huiben import CharacterBinding, ImageGenerationResult, ParsedPrompt
from huiben.cli.utils import mask_secret
from huiben.core.models import APIConfig, GenerationConfig

# Console for stderr output (preserves stdout for machine output)
console = Console(stderr=True)


@contextmanager
def generation_progress(
    model: str | None = None,
    references: int = 0,
) -> Iterator[Callable[[int], None]]:
    """
    Display an approximate progress bar during image generation.

    The backend reports no progress; the bar creeps towards 90% while the
    request is outstanding and completes when it returns.

    Args:
        model: The provider generating the image
        references: Number of reference images attached

    Yields:
        A callback taking the current percentage
    """
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn("[green]{task.description}"),
        BarColumn(),
        TextColumn("[dim]~{task.percentage:>3.0f}%[/dim]"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )

    desc_parts = ["Generating"]
    if model:
        desc_parts.append(f"[dim]({model})[/dim]")
    if references:
        desc_parts.append(f"• [dim cyan]{references} reference(s)[/dim cyan]")

    with progress:
        task = progress.add_task(" ".join(desc_parts), total=100)

        def update(value: int) -> None:
            progress.update(task, completed=value)

        yield update


def print_parsed_prompt(parsed: ParsedPrompt) -> None:
    """Print prompt segments and characters with their binding status."""
    segments = Table(title="Segments", show_lines=False)
    segments.add_column("Type", style="cyan")
    segments.add_column("Content")
    segments.add_column("Span", style="dim", justify="right")
    for seg in parsed.segments:
        segments.add_row(seg.type, seg.content, f"{seg.start_index}-{seg.end_index}")
    console.print(segments)

    if not parsed.characters:
        print_info("No @characters in prompt")
        return
    characters = Table(title="Characters")
    characters.add_column("Name", style="cyan")
    characters.add_column("Reference")
    for ref in parsed.characters:
        status = "[green]✓ bound[/green]" if ref.bound else "[yellow]unbound[/yellow]"
        characters.add_row(ref.name, status)
    console.print(characters)


def print_library(bindings: Iterable[CharacterBinding]) -> None:
    """Print reference images as a table."""
    table = Table(title="Reference images")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Tags", style="magenta")
    table.add_column("Path", style="dim")
    rows = 0
    for b in bindings:
        table.add_row(b.character_name, b.image_type, ", ".join(b.tags), b.reference_image_path)
        rows += 1
    if rows == 0:
        print_info("No reference images match")
        return
    console.print(table)


def print_api_config(config: APIConfig, generation: GenerationConfig | None = None) -> None:
    """Print provider endpoints with API keys masked, plus generation defaults."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right")
    table.add_column(style="white")
    for name, endpoint in (("seedream", config.seedream), ("banana_pro", config.banana_pro)):
        key = mask_secret(endpoint.api_key) or "[dim](not set)[/dim]"
        table.add_row(name, f"{endpoint.base_url or '[dim](not set)[/dim]'}  key={key}")
    if generation is not None:
        table.add_row(
            "defaults",
            f"{generation.model} {generation.width}x{generation.height} "
            f"count={generation.count} quality={generation.quality}",
        )
    console.print(Panel(table, title="[bold]Configuration[/bold]", border_style="cyan"))


def print_success_result(
    saved: list[str],
    result: ImageGenerationResult,
    model_used: str,
    prompt_used: str,
    references: int,
) -> None:
    """Print a rich formatted success message with generation details."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")

    for path in saved:
        table.add_row("Saved to", f"[bold green]{path}[/bold green]")
    table.add_row("Model", model_used)
    if result.task_id:
        table.add_row("Task", f"[dim]{result.task_id}[/dim]")
    if references:
        table.add_row("Features", f"[cyan]✓[/cyan] {references} reference image(s)")
    table.add_row("Prompt", f"[dim]{prompt_used}[/dim]")

    panel = Panel(
        table,
        title=f"[bold green]✓ {len(result.images)} Image(s) Generated[/bold green]",
        border_style="green",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)


def print_info(message: str) -> None:
    """Print an info message in cyan."""
    console.print(f"[cyan]ℹ[/cyan] {message}")


def print_warning(message: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_error(message: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]✗[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]✓[/green] {message}")
