"""CLI commands for epubprune.

Commands:
- run: Process every EPUB in a directory (or a prompted directory)
- file: Process a single EPUB
"""

import logging
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from epubprune.config.app_config import PruneConfig, load_app_config
from epubprune.core.batch import BatchSummary, discover_epubs, run_batch
from epubprune.core.errors import ConfigError, InputDirectoryError, PipelineError
from epubprune.core.pipeline import process_epub

app = typer.Typer(
    name="prune",
    help="Remove non-JPEG pages and <p>/<b> text from image-based EPUBs.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Prune EPUB archives."""
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _load_config_or_exit(config_file: str | None, **overrides) -> PruneConfig:
    """Load config and apply CLI overrides, or exit with a helpful error."""
    try:
        config = load_app_config(
            config_file=Path(config_file) if config_file else None,
            force_reload=True,
        )
        return config.with_overrides(**overrides)
    except ConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


def _truncate(text: str, max_len: int = 60) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def _print_summary(summary: BatchSummary) -> None:
    """Render per-archive results as a Rich table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Archivo", style="cyan")
    table.add_column("Estado", justify="center", width=8)
    table.add_column("Conservadas", justify="right")
    table.add_column("Eliminadas", justify="right")
    table.add_column("Items OPF", justify="right")
    table.add_column("Detalle")

    for r in summary.results:
        if r.success:
            table.add_row(
                r.source.name,
                "[green]✓[/green]",
                str(r.pages_kept),
                str(r.pages_removed),
                str(r.items_removed),
                str(r.output.name) if r.output else "",
            )
        else:
            table.add_row(
                r.source.name,
                "[red]✗[/red]",
                "-",
                "-",
                "-",
                _truncate(f"{r.failed_step}: {r.error}"),
            )

    console.print(table)
    console.print(
        f"\n[bold]{len(summary.succeeded)} procesados, "
        f"{len(summary.failed)} con error[/bold]"
    )


@app.command()
def run(
    input_dir: str | None = typer.Argument(None, help="Directory with .epub files"),
    extract_dir: str | None = typer.Option(
        None, "--extract-dir", "-x", help="Scratch root for unpacked archives"
    ),
    output_dir: str | None = typer.Option(
        None, "--output-dir", "-o", help="Directory for *_processed.epub files"
    ),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Concurrent archives"),
    key: str | None = typer.Option(
        None, "--key", "-k", help="Manifest keying: filename or id"
    ),
    config_file: str | None = typer.Option(None, "--config", "-c", help="YAML config file"),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Prompt for the input directory"
    ),
    strict: bool = typer.Option(False, "--strict", help="Exit 1 if any archive fails"),
) -> None:
    """Process every EPUB found under a directory."""
    config = _load_config_or_exit(
        config_file,
        input_dir=input_dir,
        extract_dir=extract_dir,
        output_dir=output_dir,
        workers=workers,
        key_mode=key,
    )

    if config.input_dir is None and interactive:
        answer = typer.prompt("Directorio con los EPUB")
        config = config.with_overrides(input_dir=answer.strip())

    if config.input_dir is None:
        console.print("[red]✗ Falta el directorio de entrada[/red]")
        console.print("  Indica INPUT_DIR, usa --interactive o define EPUBPRUNE_INPUT_DIR")
        raise typer.Exit(code=1)

    try:
        sources = discover_epubs(config.input_dir)
    except InputDirectoryError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if not sources:
        console.print(f"[yellow]⚠ No se encontraron EPUB en: {config.input_dir}[/yellow]")
        return

    console.print(
        f"[dim]Procesando {len(sources)} EPUB con {config.workers} worker(s)...[/dim]"
    )
    try:
        summary = run_batch(sources, config)
    except OSError as e:
        console.print(f"[red]✗ No se pudieron preparar los directorios de trabajo: {e}[/red]")
        raise typer.Exit(code=1)
    _print_summary(summary)

    if strict and not summary.all_succeeded:
        raise typer.Exit(code=1)


@app.command("file")
def process_file(
    epub: str = typer.Argument(..., help="Path to an EPUB file"),
    extract_dir: str | None = typer.Option(
        None, "--extract-dir", "-x", help="Scratch root for unpacked archives"
    ),
    output_dir: str | None = typer.Option(
        None, "--output-dir", "-o", help="Directory for the processed EPUB"
    ),
    key: str | None = typer.Option(
        None, "--key", "-k", help="Manifest keying: filename or id"
    ),
    config_file: str | None = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """Process a single EPUB."""
    source = Path(epub).expanduser()
    if not source.is_file():
        console.print(f"[red]✗ Archivo no encontrado: {source}[/red]")
        raise typer.Exit(code=1)

    config = _load_config_or_exit(
        config_file,
        extract_dir=extract_dir,
        output_dir=output_dir,
        key_mode=key,
    )

    try:
        result = process_epub(source, config)
    except PipelineError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {result.output}[/green]")
    console.print(f"  [dim]conservadas:[/dim] {result.pages_kept}")
    console.print(f"  [dim]eliminadas:[/dim]  {result.pages_removed}")
    console.print(f"  [dim]items OPF:[/dim]   {result.items_removed}")


if __name__ == "__main__":
    app()
