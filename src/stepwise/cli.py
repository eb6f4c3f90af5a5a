# src/stepwise/cli.py
"""Stepwise Command Line Interface.

Entry point for the stepwise CLI tool: resolve, compile, generate and
inspect workflow documents from the shell.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from stepwise import __version__
from stepwise.contracts import NodeLibrary, WorkflowError, WorkflowStep, dump_pipeline, parse_pipeline
from stepwise.core.config import StepwiseSettings, load_settings

__all__ = [
    "app",
]

app = typer.Typer(
    name="stepwise",
    help="Stepwise: convert node graphs to editable pipelines and back.",
    no_args_is_help=True,
)


@dataclass(frozen=True, slots=True)
class _GlobalOptions:
    verbose: bool
    json_logs: bool


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"stepwise version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Stepwise: convert node graphs to editable pipelines and back."""
    from stepwise.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")
    ctx.obj = _GlobalOptions(verbose=verbose, json_logs=json_logs)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(title: str, message: str, hint: str | None = None) -> None:
    """Display a formatted error panel on stderr."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    content = Text()
    content.append(message, style="white")
    if hint:
        content.append("\n\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    Console(stderr=True).print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _load_config(ctx: typer.Context, settings: Path | None) -> StepwiseSettings:
    """Load settings (defaults when no file is given) and apply their logging section."""
    from stepwise.core.logging import configure_logging

    if settings is None:
        return StepwiseSettings()

    settings_path = settings.expanduser()
    try:
        config = load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    options: _GlobalOptions = ctx.obj or _GlobalOptions(verbose=False, json_logs=False)
    configure_logging(
        json_output=options.json_logs or config.logging.json_output,
        level="DEBUG" if options.verbose else config.logging.level,
    )
    return config


def _read_json(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1) from None
    except json.JSONDecodeError as e:
        typer.echo(f"Error: {path} is not valid JSON: {e.msg} (line {e.lineno})", err=True)
        raise typer.Exit(1) from None


def _write_json(data: Any, output: Path | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    typer.echo(f"Wrote {output}", err=True)


def _library(config: StepwiseSettings, library: Path | None) -> NodeLibrary:
    """Load the node library from --library, falling back to settings."""
    from stepwise.core.pipeline import load_library

    path = library or config.library.object_info_path
    if path is None:
        _format_validation_error(
            "No node library",
            "This command needs the generation server's object_info document.",
            hint="Pass --library PATH or set library.object_info_path in the settings file.",
        )
        raise typer.Exit(1)
    try:
        return load_library(Path(path).expanduser())
    except FileNotFoundError:
        typer.echo(f"Error: Library file not found: {path}", err=True)
        raise typer.Exit(1) from None
    except ValueError as e:
        typer.echo(f"Error: Invalid library {path}: {e}", err=True)
        raise typer.Exit(1) from None


def _fail(error: WorkflowError) -> typer.Exit:
    _format_validation_error(type(error).__name__, str(error))
    return typer.Exit(1)


_SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")
_LIBRARY_OPTION = typer.Option(None, "--library", "-l", help="Path to an object_info JSON document.")
_OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Write the result to a file instead of stdout.")


@app.command()
def resolve(
    ctx: typer.Context,
    workflow: Path = typer.Argument(..., help="Workflow graph JSON file."),
    settings: Path | None = _SETTINGS_OPTION,
    output: Path | None = _OUTPUT_OPTION,
) -> None:
    """Rewrite set/get and broadcast nodes into direct links."""
    from stepwise.core.virtual import resolve_virtual_links

    config = _load_config(ctx, settings)
    try:
        result = resolve_virtual_links(_read_json(workflow), config.virtual_links)
    except WorkflowError as e:
        raise _fail(e) from None

    for warning in result.warnings:
        typer.secho(f"Warning: {warning}", fg=typer.colors.YELLOW, err=True)
    _write_json(result.graph.to_wire(), output)


@app.command("compile")
def compile_command(
    ctx: typer.Context,
    workflow: Path = typer.Argument(..., help="Workflow graph JSON file."),
    library: Path | None = _LIBRARY_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
    output: Path | None = _OUTPUT_OPTION,
) -> None:
    """Compile a workflow graph into a pipeline."""
    from stepwise.core.pipeline import prepare_workflow

    config = _load_config(ctx, settings)
    node_library = _library(config, library)
    try:
        steps = prepare_workflow(_read_json(workflow), node_library, config.virtual_links)
    except WorkflowError as e:
        raise _fail(e) from None
    _write_json(dump_pipeline(steps), output)


def _load_steps(document: Path, node_library: NodeLibrary, config: StepwiseSettings) -> list[WorkflowStep]:
    from stepwise.core.pipeline import load_document

    try:
        return load_document(_read_json(document), node_library, config.virtual_links)
    except WorkflowError as e:
        raise _fail(e) from None


@app.command()
def generate(
    ctx: typer.Context,
    pipeline: Path = typer.Argument(..., help="Pipeline JSON file (or any loadable document)."),
    library: Path | None = _LIBRARY_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
    output: Path | None = _OUTPUT_OPTION,
) -> None:
    """Generate a workflow graph from a pipeline."""
    from stepwise.core.pipeline import generate_graph

    config = _load_config(ctx, settings)
    node_library = _library(config, library)
    steps = _load_steps(pipeline, node_library, config)
    try:
        graph = generate_graph(steps, node_library)
    except WorkflowError as e:
        raise _fail(e) from None
    _write_json(graph.to_wire(), output)


@app.command()
def prompt(
    ctx: typer.Context,
    pipeline: Path = typer.Argument(..., help="Pipeline JSON file (or any loadable document)."),
    library: Path | None = _LIBRARY_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
    client_id: str | None = typer.Option(None, "--client-id", help="Client id for the request."),
    output: Path | None = _OUTPUT_OPTION,
) -> None:
    """Build the prompt request the generation server expects."""
    from stepwise.core.pipeline import create_prompt_request, generate_graph_metadata

    config = _load_config(ctx, settings)
    node_library = _library(config, library)
    steps = _load_steps(pipeline, node_library, config)
    try:
        metadata = generate_graph_metadata(steps, node_library)
    except WorkflowError as e:
        raise _fail(e) from None
    request = create_prompt_request(metadata, steps, client_id=client_id or config.prompt.client_id)
    _write_json(request, output)


@app.command()
def fingerprint(
    ctx: typer.Context,
    document: Path = typer.Argument(..., help="Pipeline or workflow JSON file."),
    library: Path | None = _LIBRARY_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """Print a stable hash of a pipeline, for diffing saved pipelines."""
    from stepwise.core.canonical import pipeline_fingerprint

    config = _load_config(ctx, settings)
    data = _read_json(document)
    if isinstance(data, list):
        try:
            steps = parse_pipeline(data)
        except WorkflowError as e:
            raise _fail(e) from None
    else:
        steps = _load_steps(document, _library(config, library), config)
    typer.echo(pipeline_fingerprint(steps))


@app.command()
def missing(
    ctx: typer.Context,
    document: Path = typer.Argument(..., help="Pipeline or workflow JSON file."),
    library: Path | None = _LIBRARY_OPTION,
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """List node types the document uses that the library lacks.

    Exits with status 1 when anything is missing.
    """
    from stepwise.core.pipeline import find_missing_graph_node_types, find_missing_node_types
    from stepwise.core.virtual import resolve_virtual_links

    config = _load_config(ctx, settings)
    node_library = _library(config, library)
    data = _read_json(document)
    try:
        if isinstance(data, list):
            missing_types = find_missing_node_types(parse_pipeline(data), node_library)
        else:
            resolved = resolve_virtual_links(data, config.virtual_links)
            missing_types = find_missing_graph_node_types(resolved.graph, node_library)
    except WorkflowError as e:
        raise _fail(e) from None

    if not missing_types:
        typer.echo("All node types are available.")
        return
    for node_type in missing_types:
        typer.echo(node_type)
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
