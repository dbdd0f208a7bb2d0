"""
Command line interface for the smart code chunker.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .chunking import default_registry
from .errors import ConfigurationError
from .ingestion import read_file_list
from .logger import configure_logging, get_logger, redirect_logging_to_file
from .services import ChunkPipeline, PipelineCallbacks, PipelineResult
from .settings import settings
from .storage import JsonlChunkSink
from .version import get_version

app = typer.Typer(name="smartchunk", help="Syntax-aware source code chunker.")
configure_logging(enable_console=False)
log = get_logger(__name__)
console = Console()


def _print_summary(result: PipelineResult, output: Path) -> None:
    typer.echo(
        f"Chunked {result.files_processed} files -> {output} "
        f"chunks={result.chunk_count} tokens={result.token_total}"
    )
    if result.oversized_count:
        typer.echo(f"Over-budget indivisible chunks: {result.oversized_count}")
    if result.files_skipped:
        typer.echo(f"Skipped (unsupported or missing): {result.files_skipped}")
    if result.failures:
        typer.echo(f"Failed files: {result.files_failed}")
        for failure in sorted(result.failures, key=lambda item: item.path):
            typer.echo(f"  - {failure.path} [{failure.kind}] {failure.reason}")


@app.command()
def run(
    path: Path = typer.Option(
        settings.root_path, "--path", "-p", help="Root directory to scan."
    ),
    output: Path = typer.Option(
        settings.output_path, "--output", "-o", help="JSON-lines output file."
    ),
    max_tokens: int = typer.Option(
        settings.max_chunk_tokens, "--max-tokens", "-t", help="Token budget per chunk."
    ),
    since: Optional[str] = typer.Option(
        None,
        "--since",
        "-s",
        help="Only chunk files changed between this commit and HEAD.",
    ),
    files_from: Optional[Path] = typer.Option(
        None,
        "--files-from",
        help="Text file listing the files to chunk, one per line.",
    ),
    workers: int = typer.Option(
        settings.workers, "--workers", "-w", help="Number of worker threads."
    ),
    ignore: Optional[str] = typer.Option(
        None,
        "--ignore",
        "-i",
        help="Comma-separated names to exclude from the walk (appended to defaults).",
    ),
    tolerate_errors: bool = typer.Option(
        settings.tolerate_syntax_errors,
        "--tolerate-syntax-errors",
        help="Chunk files even when the parser reports syntax errors.",
    ),
    log_file: bool = typer.Option(
        False,
        "--log",
        help="Write detailed logs to smartchunk.log next to the output file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr."),
) -> None:
    """Chunk a source tree into a JSON-lines file."""
    if log_file:
        log_path = (output.parent / "smartchunk.log").resolve()
        redirect_logging_to_file(log_path, settings.log_level)
        typer.echo(f"Logging detailed output to {log_path}")
    elif verbose:
        configure_logging(level=settings.log_level)

    user_ignore = [name.strip() for name in (ignore or "").split(",") if name.strip()]
    user_ignore = list(settings.ignore_patterns) + user_ignore

    try:
        file_list = read_file_list(files_from, root=path) if files_from else None
        pipeline = ChunkPipeline(
            max_chunk_tokens=max_tokens,
            workers=workers,
            tolerate_syntax_errors=tolerate_errors,
        )
        files = pipeline.resolve_files(
            path,
            file_list_override=file_list,
            since=since,
            ignore_patterns=user_ignore,
        )
    except ConfigurationError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=2)

    mode = "file list" if file_list is not None else (f"git diff since {since}" if since else "full scan")
    typer.echo(f"Smart chunker started with {mode}: {len(files)} files")

    with JsonlChunkSink(output) as sink, Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        chunk_task = progress.add_task("Chunking files", total=max(len(files), 1))

        def on_file_done(done: Path) -> None:
            progress.update(chunk_task, advance=1, description=f"Chunking {done.name}")

        def on_stage(stage: str) -> None:
            if stage == "chunk_completed":
                progress.update(
                    chunk_task,
                    completed=max(len(files), 1),
                    description="Chunking complete",
                )

        result = pipeline.run(
            files,
            sink,
            callbacks=PipelineCallbacks(file_done=on_file_done, stage=on_stage),
        )

    _print_summary(result, output)


@app.command()
def languages() -> None:
    """List supported languages and their file extensions."""
    for driver in sorted(default_registry(), key=lambda item: item.name):
        kinds = ", ".join(dict.fromkeys(rule.chunk_type for rule in driver.rules))
        typer.echo(f"- {driver.name}: {' '.join(driver.extensions)} [{kinds}]")


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(get_version())


if __name__ == "__main__":  # pragma: no cover
    app()
