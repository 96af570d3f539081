"""Typer-based CLI for listing and running prlens review tools."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from . import __version__, config
from .models import ToolInvocation
from .process import ExternalProcessError
from .session import ReviewContext, parse_name_status
from .tools import TOOLS, ToolDispatcher

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    help="🔍 prlens: code-intelligence tools for automated pull-request review.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"prlens v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """prlens: inspect a pull request's working copy the way a review agent would."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command("tools")
def list_tools():
    """Show the tool catalog."""
    table = Table(title="Review Tools", show_header=True, show_lines=False)
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Required", style="magenta")
    table.add_column("Description", min_width=30)
    for spec in TOOLS.values():
        required = spec.schema()["parameters"]["required"]
        table.add_row(spec.name, ", ".join(required) or "-", spec.description)
    console.print(table)


@app.command("schema")
def show_schema():
    """Print the tool catalog as JSON, as handed to the orchestrator."""
    typer.echo(json.dumps([spec.schema() for spec in TOOLS.values()], indent=2))


def _parse_arguments(pairs: List[str], raw_json: Optional[str]) -> Dict[str, Any]:
    arguments: Dict[str, Any] = {}
    if raw_json:
        try:
            loaded = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint="--json") from exc
        if not isinstance(loaded, dict):
            raise typer.BadParameter("Expected a JSON object.", param_hint="--json")
        arguments.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'.", param_hint="--arg")
        arguments[key.strip()] = value
    return arguments


def build_context(repo: Path, base: str, head: str) -> ReviewContext:
    """Review context for *repo* with the changed-file list filled in when git allows."""
    ctx = ReviewContext(workdir=repo, base_sha=base, head_sha=head, limits=config.load_limits())
    try:
        ctx.files = parse_name_status(ctx.git.name_status(base, head))
    except ExternalProcessError as exc:
        logger.debug("Changed-file list unavailable: %s", exc)
    return ctx


@app.command("run")
def run_tool(
    tool: str = typer.Argument(..., help="Tool name (see 'prlens tools')."),
    arg: List[str] = typer.Option([], "--arg", "-a", help="Tool argument as key=value (repeatable)."),
    raw_json: Optional[str] = typer.Option(None, "--json", help="Tool arguments as a JSON object."),
    repo: Path = typer.Option(
        Path("."), "--repo", "-r", exists=True, file_okay=False, help="Working copy of the pull request.",
    ),
    base: str = typer.Option(config.DEFAULT_BASE_REF, "--base", help="Base revision of the diff range."),
    head: str = typer.Option(config.DEFAULT_HEAD_REF, "--head", help="Head revision of the diff range."),
    render: bool = typer.Option(False, "--render", help="Render the Markdown output in the terminal."),
):
    """Run one review tool and print its output."""
    arguments = _parse_arguments(arg, raw_json)
    dispatcher = ToolDispatcher(build_context(repo, base, head))
    result = dispatcher.dispatch(ToolInvocation(name=tool, arguments=arguments))

    if not result.ok:
        typer.echo(typer.style(f"❌ {result.error}", fg=typer.colors.RED), err=True)
        raise typer.Exit(code=1)
    if render:
        console.print(Markdown(result.text))
    else:
        typer.echo(result.text)


if __name__ == "__main__":
    app()
