"""CLI entry point for binimport."""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from binimport.core.exceptions import BinImportError, ProjectFileNotFoundError
from binimport.core.monitor import TaskMonitor
from binimport.core.storage import ProjectRepository, get_default_db_path
from binimport.importer import (
    DEFAULT_LANGUAGE,
    Importer,
    program_to_dict,
    project_file_to_dict,
)

app = typer.Typer(
    name="binimport",
    help="Load raw binaries into structured, addressable programs.",
    no_args_is_help=True,
)
console = Console()


def get_repo(path: Path) -> ProjectRepository:
    """Get or create a project repository for the given path."""
    db_path = get_default_db_path(path)
    return ProjectRepository(db_path)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def load(
    file: Annotated[Path, typer.Argument(help="File to load", exists=True, dir_okay=False)],
    project: Annotated[Path, typer.Option("--project", "-p", help="Project directory")] = Path(
        "."
    ),
    language: Annotated[
        str, typer.Option("--language", "-l", help="Processor language ID")
    ] = DEFAULT_LANGUAGE,
    compiler: Annotated[
        str | None, typer.Option("--compiler", "-c", help="Compiler spec ID")
    ] = None,
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Program name (default: file name)")
    ] = None,
    folder: Annotated[str, typer.Option("--folder", "-f", help="Project folder")] = "/",
    option: Annotated[
        list[str] | None, typer.Option("--option", "-o", help="Load option as KEY=VALUE")
    ] = None,
    no_save: Annotated[
        bool, typer.Option("--no-save", help="Load in memory without saving")
    ] = False,
    language_file: Annotated[
        list[Path] | None,
        typer.Option("--language-file", help="Extra processor description (JSON)"),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Load a binary file into the project."""
    with get_repo(project.resolve()) as repo:
        importer = Importer(None if no_save else repo)
        try:
            for path in language_file or []:
                importer.add_language_file(path)
        except (ValueError, BinImportError) as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            disable=output_json,
        ) as progress:
            task = progress.add_task(f"Loading [cyan]{file.name}[/]", total=None)

            def on_update(monitor: TaskMonitor) -> None:
                progress.update(
                    task,
                    total=monitor.maximum or None,
                    completed=monitor.progress,
                    description=f"[cyan]{monitor.message or file.name}[/]",
                )

            try:
                result = importer.import_file(
                    file.resolve(),
                    language_id=language,
                    compiler_spec_id=compiler,
                    name=name,
                    folder=folder,
                    option_args=option or [],
                    monitor=TaskMonitor(on_update),
                )
            except BinImportError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from e

        try:
            if result.error is not None:
                console.print(f"[red]Error:[/red] {result.error}")
                raise typer.Exit(1)

            if output_json:
                print(
                    json.dumps(
                        {
                            "programs": [program_to_dict(p) for p in result.programs],
                            "messages": result.log.messages,
                        }
                    )
                )
                return

            if not result.programs:
                console.print("[yellow]No programs loaded[/yellow]")
            for program in result.programs:
                summary = program_to_dict(program)
                location = summary["path"] or summary["name"]
                console.print(f"[green]Loaded[/green] [cyan]{location}[/]")
                console.print(f"  Language: {summary['language']} ({summary['compiler']})")
                console.print(f"  Image base: {summary['image_base']}")
                console.print(f"  Blocks: {len(summary['blocks'])}")
                console.print(f"  Symbols: {summary['symbols']}")
                console.print(f"  MD5: [dim]{summary['md5']}[/]")

            if result.log.has_messages:
                console.print("[yellow]Messages:[/yellow]")
                for message in result.log.messages:
                    console.print(f"  {message}", markup=False)
        finally:
            result.release()


@app.command()
def programs(
    folder: Annotated[
        str | None, typer.Option("--folder", "-f", help="Only list this folder")
    ] = None,
    project: Annotated[Path, typer.Option("--project", "-p", help="Project directory")] = Path(
        "."
    ),
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List the programs saved in the project."""
    path = project.resolve()

    with get_repo(path) as repo:
        files = repo.list_files(folder)

        if output_json:
            print(json.dumps([project_file_to_dict(f) for f in files]))
            return

        if not files:
            console.print("No programs found")
            return

        table = Table("Path", "Language", "Image base", "Imported")
        for stored in files:
            table.add_row(
                f"[cyan]{stored.path}[/]",
                stored.language_id,
                stored.image_base or "",
                str(stored.created_at),
            )
        console.print(table)


@app.command()
def info(
    program_path: Annotated[str, typer.Argument(help="Project path, e.g. /firmware.bin")],
    project: Annotated[Path, typer.Option("--project", "-p", help="Project directory")] = Path(
        "."
    ),
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show properties, blocks and symbols of a saved program."""
    path = project.resolve()

    with get_repo(path) as repo:
        try:
            stored = repo.open_file(program_path)
        except ProjectFileNotFoundError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e

        if output_json:
            print(json.dumps(project_file_to_dict(stored, details=True)))
            return

        console.print(f"\n[bold cyan]{stored.path}[/] ({stored.language_id})")
        for key, value in stored.properties.items():
            console.print(f"  {key}: [dim]{value}[/]")

        if stored.blocks:
            console.print("  [green]Blocks:[/]")
            for block in stored.blocks:
                kind = "overlay" if block.overlay else "init" if block.initialized else "uninit"
                console.print(
                    f"    [cyan]{block.name}[/] {block.start} length=0x{block.length:x} "
                    f"[dim]({block.mode}, {kind})[/]"
                )

        if stored.symbols:
            console.print("  [green]Symbols:[/]")
            for symbol in stored.symbols:
                flags = [
                    flag
                    for flag, on in (
                        ("primary", symbol.is_primary),
                        ("pinned", symbol.is_pinned),
                        ("entry", symbol.is_entry),
                    )
                    if on
                ]
                suffix = f" [yellow]\\[{', '.join(flags)}][/]" if flags else ""
                console.print(f"    [cyan]{symbol.name}[/] {symbol.address}{suffix}")

        if stored.functions:
            console.print("  [green]Functions:[/]")
            for function in stored.functions:
                console.print(f"    [cyan]{function.name}[/] {function.entry}")


@app.command()
def languages(
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List the built-in processor languages."""
    service = Importer(None).languages

    if output_json:
        result = [
            {
                "id": lang.language_id,
                "description": lang.description,
                "compilers": [c.compiler_spec_id for c in lang.compiler_specs],
                "default_space": lang.default_space.name,
            }
            for lang in service.languages()
        ]
        print(json.dumps(result))
        return

    for lang in service.languages():
        compilers = ", ".join(c.compiler_spec_id for c in lang.compiler_specs)
        console.print(f"[cyan]{lang.language_id}[/cyan] [dim]({compilers})[/]")
        if lang.description:
            console.print(f"  {lang.description}")


@app.command()
def stats(
    project: Annotated[Path, typer.Option("--project", "-p", help="Project directory")] = Path(
        "."
    ),
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show project statistics."""
    path = project.resolve()

    with get_repo(path) as repo:
        result = repo.get_stats()

        if output_json:
            print(json.dumps(result, default=str))
        else:
            console.print(f"Folders: {result['folders']}")
            console.print(f"Programs: {result['programs']}")
            console.print(f"Blocks: {result['blocks']}")
            console.print(f"Symbols: {result['symbols']}")
            if result["last_imported"]:
                console.print(f"Last imported: {result['last_imported']}")


if __name__ == "__main__":
    app()
