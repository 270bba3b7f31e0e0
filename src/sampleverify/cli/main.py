"""
sampleverify CLI - Main entry point.

Provides commands for verifying that code samples in documentation compile.
"""

import logging
import shlex
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sampleverify.config.loader import (
    ConfigurationError,
    apply_overrides,
    create_config_from_args,
    generate_default_config,
    load_config_from_yaml,
)
from sampleverify.config.models import VerifyConfig
from sampleverify.markdown.fragment_stream import DocumentReadError, FragmentStream, discover_documents
from sampleverify.sessions import SessionAggregator
from sampleverify.verifier.pipeline import NO_INPUT_EXIT_CODE, VerificationPipeline
from sampleverify.verifier.report import ReportFormatter

app = typer.Typer(
    name="sampleverify",
    help="Verify that code samples embedded in documentation compile",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool):
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(name)s: %(message)s")


def resolve_config(
    root: Optional[str],
    config: Optional[str],
    compiler: Optional[str] = None,
    command: Optional[str] = None,
    timeout: Optional[int] = None,
    parallel: Optional[bool] = None,
    json_report: Optional[str] = None,
    color: bool = True,
) -> VerifyConfig:
    """Load a YAML configuration or build one from command-line arguments."""
    if config:
        cfg = load_config_from_yaml(Path(config))
        return apply_overrides(
            cfg,
            root=Path(root) if root else None,
            json_report=Path(json_report) if json_report else None,
            color=False if not color else None,
            parallel=parallel,
            compiler=compiler,
            command=shlex.split(command) if command else None,
            timeout=timeout,
        )

    return create_config_from_args(
        root=Path(root or "."),
        compiler=compiler or "python",
        command=shlex.split(command) if command else None,
        timeout=timeout if timeout is not None else 60,
        json_report=Path(json_report) if json_report else None,
        color=color,
        parallel=bool(parallel),
    )


# =============================================================================
# Commands
# =============================================================================


@app.command()
def verify(
    root: Optional[str] = typer.Argument(None, help="Root directory containing the documents"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    compiler: Optional[str] = typer.Option(None, "--compiler", help="Compiler adapter: python (default) or command"),
    command: Optional[str] = typer.Option(None, "--command", help="Compiler command line for the 'command' adapter"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Per-session compile timeout in seconds (default 60)"),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--sequential", help="Compile sessions concurrently"),
    json_report: Optional[str] = typer.Option(None, "--json-report", help="Also write a JSON report to this path"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Verify that annotated code samples under ROOT compile.

    Examples:
        sampleverify verify ./docs
        sampleverify verify ./docs --compiler command --command "gcc -fsyntax-only {files}"
        sampleverify verify -c sampleverify.yaml --parallel
    """
    configure_logging(verbose)

    try:
        cfg = resolve_config(root, config, compiler, command, timeout, parallel, json_report, not no_color)
        run = VerificationPipeline(cfg).run()
    except ConfigurationError as e:
        err_console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        if verbose:
            err_console.print_exception()
        raise typer.Exit(1)

    if run.no_input:
        ReportFormatter(err_console, color=cfg.report.color).render(run.lines)
    else:
        ReportFormatter(console, color=cfg.report.color).render(run.lines)

    raise typer.Exit(run.exit_code)


@app.command()
def sessions(
    root: Optional[str] = typer.Argument(None, help="Root directory containing the documents"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    List the sessions found in each document without compiling anything.
    """
    configure_logging(verbose)

    try:
        cfg = resolve_config(root, config)
        documents = discover_documents(cfg.documents)
    except ConfigurationError as e:
        err_console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not documents:
        err_console.print(f"No markdown files found under {cfg.documents.root}")
        raise typer.Exit(NO_INPUT_EXIT_CODE)

    aggregator = SessionAggregator()
    doc_root = Path(cfg.documents.root).resolve()

    for document in documents:
        try:
            fragments = FragmentStream(document, doc_root).fragments()
        except DocumentReadError as e:
            err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            continue
        groups = aggregator.aggregate(fragments)

        table = Table(title=escape(str(document)))
        table.add_column("Session", style="cyan")
        table.add_column("Fragments", justify="right")
        table.add_column("Editable", justify="right")
        table.add_column("Project")
        table.add_column("Status", justify="center")

        for group in groups:
            if not group.valid:
                status = "[red]spans projects[/red]"
            elif group.has_linkage_errors:
                status = "[red]linkage errors[/red]"
            else:
                status = "[green]✓[/green]"
            table.add_row(
                escape(group.key) if group.key is not None else "-",
                str(len(group.fragments)),
                str(len(group.editable_fragments)),
                escape(", ".join(group.project_identities)) or "-",
                status,
            )

        console.print(table)


@app.command()
def init(
    output: str = typer.Option("./sampleverify.yaml", "--output", "-o", help="Output path for config file"),
):
    """
    Generate a default configuration file.

    Creates a sampleverify.yaml with defaults that you can customize.
    """
    output_path = Path(output)

    if output_path.exists():
        if not typer.confirm(f"{output} already exists. Overwrite?"):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Abort()

    generate_default_config(output_path)
    console.print(f"[green]✓[/green] Generated configuration file: {output}")


# =============================================================================
# Entry Point
# =============================================================================


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
