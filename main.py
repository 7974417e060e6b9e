import logging
from pathlib import Path
from typing import List, Optional

import typer

from esp_register_tables.config import get_build_config
from esp_register_tables.errors import BuildError, PdfInspectError, TableFormatError
from esp_register_tables.executor import BuildExecutor
from esp_register_tables.pdfinfo import page_count
from esp_register_tables.rules import DEFAULT_GOAL, build_graph
from esp_register_tables.tables import export_workbook

app = typer.Typer(add_completion=False)

DIRECTORY_OPTION = typer.Option(
    Path("."),
    "--directory",
    "-C",
    help="Directory holding the source manual and build artifacts",
)
LOG_LEVEL_OPTION = typer.Option(
    "INFO",
    "--log-level",
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)


def _configure_logging(log_level: str, log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    # per-request lines from httpx duplicate the download log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if log_file is not None:
        logging.getLogger(__name__).info("Logging to %s", log_file)


@app.command()
def build(
    targets: Optional[List[str]] = typer.Argument(
        None, help=f"Targets to bring up to date (default: {DEFAULT_GOAL})"
    ),
    directory: Path = DIRECTORY_OPTION,
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Steps to run at once"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print the steps that would run without running them"
    ),
    always_make: bool = typer.Option(
        False, "--always-make", "-B", help="Rebuild every target regardless of timestamps"
    ),
    log_level: str = LOG_LEVEL_OPTION,
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also log to this file"),
    qpdf: str = typer.Option("qpdf", "--qpdf", help="Page-extraction executable"),
    java: str = typer.Option("java", "--java", help="Java launcher used to run tabula"),
):
    """
    Bring the requested artifacts up to date, running only stale steps.
    """
    _configure_logging(log_level, log_file)
    config = get_build_config(directory, qpdf=qpdf, java=java)
    executor = BuildExecutor(
        build_graph(config),
        config.directory,
        jobs=jobs,
        dry_run=dry_run,
        always_make=always_make,
    )
    try:
        results = executor.run(targets or [DEFAULT_GOAL])
    except BuildError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)

    for result in results:
        line = f"{result.target}: {result.status}"
        if result.status == "would-build" and result.command:
            line += f" [{result.command}]"
        if result.error:
            line += f" ({result.error})"
        typer.echo(line)
    if any(r.status == "failed" for r in results):
        raise typer.Exit(code=1)


@app.command()
def status(directory: Path = DIRECTORY_OPTION):
    """
    Report which artifacts are missing, stale or up to date.
    """
    config = get_build_config(directory)
    graph = build_graph(config)
    executor = BuildExecutor(graph, config.directory)

    for source in graph.sources_for([DEFAULT_GOAL]):
        path = config.path(source.name)
        state = "present" if path.exists() else "missing"
        typer.echo(f"{source.name}: source, {state}{_pages_note(path)}")
    for rule in graph.closure([DEFAULT_GOAL]):
        path = config.path(rule.target)
        if not path.exists():
            state = "missing"
        elif executor.is_stale(rule):
            state = "stale"
        else:
            state = "up-to-date"
        typer.echo(f"{rule.target}: {state}{_pages_note(path)}")


def _pages_note(path: Path) -> str:
    if path.suffix.lower() != ".pdf" or not path.exists():
        return ""
    try:
        return f", {page_count(path)} pages"
    except PdfInspectError:
        return ", unreadable"


@app.command()
def targets(directory: Path = DIRECTORY_OPTION):
    """
    List the recognised target names and what each depends on.
    """
    graph = build_graph(get_build_config(directory))
    for name in graph.names():
        if name in graph.phony:
            prerequisites = graph.phony[name]
        else:
            prerequisites = graph.rules[name].prerequisites
        typer.echo(f"{name}: {' '.join(prerequisites)}".rstrip())


@app.command()
def export(
    output: Path = typer.Argument(Path("register_tables.xlsx"), help="Excel workbook to write"),
    directory: Path = DIRECTORY_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
):
    """
    Write every built JSON table to one Excel workbook, a sheet per artifact.
    """
    _configure_logging(log_level)
    config = get_build_config(directory)
    paths = [config.path(t) for t in config.table_targets() if config.path(t).exists()]
    if not paths:
        typer.echo("error: no table artifacts built yet; run `build` first", err=True)
        raise typer.Exit(code=1)
    try:
        export_workbook(paths, output)
    except TableFormatError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Wrote {len(paths)} table(s) to {output}")


def main():
    app()


if __name__ == "__main__":
    main()
