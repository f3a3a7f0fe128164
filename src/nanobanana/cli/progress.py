"""
Rich progress displays for CLI operations.

All output goes to stderr to preserve stdout for machine-readable output
(result paths, JSON).
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from nanobanana import Element, GeneratedImage, ParsedPrompt, format_relative_time
from nanobanana.cli.utils import short_id

# Console for stderr output (preserves stdout for machine output)
console = Console(stderr=True)


@contextmanager
def _spinner(description: str, style: str) -> Iterator[None]:
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn(f"[{style}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,  # Disappears when done
    )
    with progress:
        task = progress.add_task(description, total=None)
        yield
        progress.update(task, completed=True)


@contextmanager
def generation_progress(
    model: str | None = None,
    resolution: str | None = None,
    input_image_count: int = 0,
) -> Iterator[None]:
    """
    Display a spinner during image generation.

    Args:
        model: The image generation model being used
        resolution: Requested output size ("WxH")
        input_image_count: Number of referenced and uploaded images sent along

    Yields:
        None while generation is in progress
    """
    desc_parts = ["Generating image"]
    if model:
        model_display = model if len(model) <= 40 else f"{model[:37]}..."
        desc_parts.append(f"[dim]({model_display})[/dim]")
    if resolution:
        desc_parts.append(f"[dim]{resolution}[/dim]")
    if input_image_count:
        desc_parts.append(f"• [dim cyan]{input_image_count} reference image(s)[/dim cyan]")

    with _spinner(" ".join(desc_parts), "green"):
        yield


@contextmanager
def upload_progress(handle: str) -> Iterator[None]:
    """Display a spinner while an element image is uploaded."""
    with _spinner(f"Uploading image for [bold]{handle}[/bold]", "cyan"):
        yield


def print_success_result(
    output_path: Path,
    generation_time: float,
    model_used: str,
    resolution: str,
    prompt_used: str,
    input_image_count: int,
    original_prompt: str | None = None,
) -> None:
    """
    Print a rich formatted success message with generation details.

    Args:
        output_path: Path where the image was saved
        generation_time: Time taken to generate (seconds)
        model_used: The model that generated the image
        resolution: Output size ("WxH")
        prompt_used: The prompt sent to the model (handles replaced)
        input_image_count: Number of reference images sent
        original_prompt: The prompt as typed, when it differs from prompt_used
    """
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")

    table.add_row("Saved to", f"[bold green]{output_path}[/bold green]")
    table.add_row("Model", model_used)
    table.add_row("Resolution", resolution)
    table.add_row("Time", f"{generation_time:.1f}s")
    if input_image_count:
        table.add_row("References", f"[cyan]{input_image_count}[/cyan] image(s)")

    if original_prompt and original_prompt != prompt_used:
        table.add_row("Input", f"[dim]{original_prompt}[/dim]")
        table.add_row("Sent", f"[dim]{prompt_used}[/dim]")
    else:
        table.add_row("Prompt", f"[dim]{prompt_used}[/dim]")

    panel = Panel(
        table,
        title="[bold green]✓ Image Generated[/bold green]",
        border_style="green",
        padding=(1, 2),
    )

    console.print()
    console.print(panel)


def print_parsed_prompt(parsed: ParsedPrompt) -> None:
    """Show the cleaned prompt and its handle -> placeholder mapping."""
    console.print(f"[cyan]Cleaned prompt:[/cyan] {parsed.cleaned_prompt}")
    if not parsed.references:
        console.print("[dim]No @handles found.[/dim]")
        return
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Handle")
    for ref in parsed.references:
        table.add_row(str(ref.ref_index), ref.handle)
    console.print(table)


def print_elements_table(elements: Sequence[Element]) -> None:
    if not elements:
        console.print("[dim]No elements yet. Add one with 'nanobanana elements add'.[/dim]")
        return
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Handle", style="bold")
    table.add_column("Image URL")
    table.add_column("Created")
    for element in elements:
        table.add_row(
            element.id,
            element.handle,
            element.image_url,
            element.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def print_history_table(entries: Sequence[GeneratedImage]) -> None:
    if not entries:
        console.print("[dim]No generated images in history.[/dim]")
        return
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("When")
    table.add_column("Resolution")
    table.add_column("Prompt", overflow="fold")
    for entry in entries:
        table.add_row(
            short_id(entry.id),
            format_relative_time(entry.created_at),
            entry.resolution,
            entry.prompt,
        )
    console.print(table)


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
