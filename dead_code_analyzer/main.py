"""Dead Code Analyzer CLI - find unused classes and functions in Dart/Flutter projects."""
import time
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from dead_code_analyzer.analyzer.project_analyzer import AnalysisResult, ProjectRootError, analyze_project
from dead_code_analyzer.config import AnalysisConfig, RedeclarationPolicy, __version__, get_config
from dead_code_analyzer.reaper.cleaner import find_deletable_files
from dead_code_analyzer.reaper.safe_delete import SafeDeleter
from dead_code_analyzer.reporters.console_reporter import ConsoleReporter
from dead_code_analyzer.reporters.file_reporter import FileReporter, ReportStyle
from dead_code_analyzer.reporters.json_reporter import write_json_report
from dead_code_analyzer.utils.logger import configure_logging
from dead_code_analyzer.utils.safe_console import SafeConsole

app = typer.Typer(
    name="dead-code-analyzer",
    help="Find unused classes and functions in Dart/Flutter projects",
    add_completion=False
)
console = SafeConsole()
log_console = SafeConsole(stderr=True)


def run_analysis(config: AnalysisConfig, show_progress: bool = True) -> AnalysisResult:
    """Run both analysis phases behind a rich progress bar.

    Raises:
        typer.Exit: If the project root cannot be read
    """
    if show_progress:
        progress_ctx = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True
        )
    else:
        progress_ctx = nullcontext()

    with progress_ctx as progress:
        task = progress.add_task("Discovering Dart files...", total=None) if show_progress else None

        def on_progress(description: str, completed: int, total: int) -> None:
            if progress is not None:
                progress.update(task, description=description, completed=completed, total=total)

        try:
            return analyze_project(config, on_progress)
        except ProjectRootError as e:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            raise typer.Exit(1)


def _build_config(project_path: str, **overrides) -> AnalysisConfig:
    try:
        return AnalysisConfig.from_config(Path(project_path).resolve(), get_config(), **overrides)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


@app.command()
def audit(
    project_path: str = typer.Argument(".", help="Flutter/Dart project root to analyze"),
    funcs: Optional[bool] = typer.Option(None, "--funcs/--no-funcs", "-f", help="Also analyze functions, methods and constructors"),
    trace: Optional[bool] = typer.Option(None, "--trace/--no-trace", "-t", help="Show diagnostic output and per-bucket usage tables"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress bar; errors only"),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum unused entities listed per kind (0 = all)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Worker threads per phase"),
    redeclaration: Optional[RedeclarationPolicy] = typer.Option(
        None, "--redeclaration", case_sensitive=False,
        help="Same name declared in two files: last_wins or coexist"
    ),
    json_output: Optional[Path] = typer.Option(None, "--json", help="Also write the full entity table as JSON"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Directory to save a full report file in"),
    style: ReportStyle = typer.Option(ReportStyle.TXT, "--style", "-s", case_sensitive=False, help="Report file format: txt, md or html"),
):
    """Scan a project and report unused, internal-only and external classes/functions."""
    config = _build_config(
        project_path,
        include_functions=funcs,
        trace=trace,
        max_workers=workers,
        redeclaration_policy=redeclaration,
        max_unused_entities=limit,
    )
    configure_logging(trace=config.trace, quiet=quiet, console=log_console)

    if not config.project_path.exists():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(config.project_path))}")
        raise typer.Exit(1)

    if not quiet:
        console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(config.project_path))}\n")

    start_time = time.time()
    result = run_analysis(config, show_progress=not quiet)
    elapsed = time.time() - start_time

    ConsoleReporter(console, config.project_path, limit=config.max_unused_entities, trace=config.trace).report(result)

    if json_output is not None:
        written = write_json_report(result, json_output)
        console.print(f"[green]✓ JSON report written to {escape(str(written))}[/green]")

    if out is not None:
        try:
            written = FileReporter(config.project_path).save_report(result, out, style)
        except OSError as e:
            console.print(f"[bold red]Error:[/bold red] Could not save report: {escape(str(e))}")
            raise typer.Exit(1)
        console.print(f"[green]✓ Report saved to {escape(str(written))}[/green]")

    if not quiet:
        console.print(f"[dim]Analyzed {len(result.files)} files in {elapsed:.2f}s[/dim]")


@app.command()
def clean(
    project_path: str = typer.Argument(".", help="Flutter/Dart project root to clean"),
    funcs: Optional[bool] = typer.Option(None, "--funcs/--no-funcs", "-f", help="Also analyze functions before judging files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be deleted without deleting"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    trash: Optional[str] = typer.Option(None, "--trash", help="Trash directory (default: DEAD_CODE_TRASH_PATH)"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress bar"),
):
    """Move files whose every declaration is unused or commented out to the trash."""
    config = _build_config(project_path, include_functions=funcs)
    configure_logging(trace=config.trace, quiet=quiet, console=log_console)

    if not config.project_path.exists():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(config.project_path))}")
        raise typer.Exit(1)

    console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(config.project_path))}\n")
    result = run_analysis(config, show_progress=not quiet)
    deletable = find_deletable_files(result)

    if not deletable:
        console.print("[bold green]No dead files found.[/bold green]")
        return

    table = Table(title="Files to Delete")
    table.add_column("File Path", style="cyan", no_wrap=False)
    table.add_column("Dead Declarations", style="magenta", no_wrap=False)
    for candidate in deletable:
        try:
            display_path = Path(candidate.file_path).relative_to(config.project_path)
        except ValueError:
            display_path = candidate.file_path
        names = ", ".join(entity.qualified_name for entity in candidate.entities)
        table.add_row(escape(str(display_path)), escape(names))
    console.print(table)

    if dry_run:
        console.print(f"\n[yellow]Dry run: {len(deletable)} file(s) would be moved to the trash.[/yellow]")
        return

    if not yes and not typer.confirm(f"\nMove {len(deletable)} file(s) to the trash?", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    trash_dir = Path(trash or get_config().trash_path)
    if not trash_dir.is_absolute():
        trash_dir = config.project_path / trash_dir
    deleter = SafeDeleter(trash_dir)

    with console.status("Moving files to trash..."):
        deletion_ids = deleter.delete_multiple({c.file_path: c.entity_keys for c in deletable})

    moved = {path: deletion_id for path, deletion_id in deletion_ids.items() if deletion_id}
    failed = len(deletion_ids) - len(moved)

    console.print(Panel(
        "\n".join(f"{escape(deletion_id)}  {escape(path)}" for path, deletion_id in moved.items()),
        title=f"✓ Moved {len(moved)} file(s) to {escape(str(trash_dir))}",
        border_style="green",
    ))
    console.print("[dim]Restore a file with: dead-code-analyzer restore <deletion-id>[/dim]")
    if failed:
        console.print(f"[bold red]{failed} file(s) could not be moved; see warnings above.[/bold red]")
        raise typer.Exit(1)


@app.command()
def restore(
    deletion_id: str = typer.Argument(..., help="Deletion ID printed by the clean command"),
    project_path: str = typer.Option(".", "--path", "-p", help="Project root the trash belongs to"),
    trash: Optional[str] = typer.Option(None, "--trash", help="Trash directory (default: DEAD_CODE_TRASH_PATH)"),
):
    """Move a trashed file back to where it came from."""
    trash_dir = Path(trash or get_config().trash_path)
    if not trash_dir.is_absolute():
        trash_dir = Path(project_path).resolve() / trash_dir

    if not trash_dir.exists():
        console.print(f"[bold red]Error:[/bold red] Trash directory does not exist: {escape(str(trash_dir))}")
        raise typer.Exit(1)

    try:
        restored = SafeDeleter(trash_dir).restore(deletion_id)
    except (ValueError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Restored {escape(str(restored))}[/green]")


def _version_callback(value: bool):
    if value:
        console.print(f"dead-code-analyzer {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
):
    """Dead Code Analyzer - unused class and function detection for Dart/Flutter."""
    pass


if __name__ == "__main__":
    app()
