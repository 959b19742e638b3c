"""CLI entrypoint: generate mock trees, serve them, create single endpoints."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from .config import DEFAULT_MOCK_ROOT, load_settings
from .diagnostics import DiagnosticSink
from .errors import (
    DuplicateEndpointError,
    EndpointValidationError,
    SpecParseError,
    StorageError,
)
from .logging_utils import configure_logging
from .output_config import get_log_format
from .pipeline import SpecPipeline
from .registry import EndpointRegistry
from .router import RuntimeRouter
from .server import serve as serve_app

app = typer.Typer(help="Generate and serve file-backed mocks from OpenAPI/Swagger specifications.")

SUPPORTED_LOG_FORMATS = {"json", "console", "plain"}


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (debug, info, warning, error). Defaults to SWAGGER_MOCK_LOG_LEVEL or info.",
    ),
    log_format: Optional[str] = typer.Option(
        None,
        "--log-format",
        help="Log output: console, plain or json. Defaults to CONSOLE_OUTPUT_FORMAT or console.",
    ),
) -> None:
    if log_format is not None and log_format.lower() not in SUPPORTED_LOG_FORMATS:
        raise typer.BadParameter("Log format must be 'console', 'plain' or 'json'")
    settings = load_settings(log_level=log_level, log_format=log_format)
    configure_logging(settings.log_level, get_log_format(settings.log_format))
    ctx.obj = settings


@app.command()
def generate(
    swagger: Path = typer.Option(
        ...,
        "--swagger",
        "-s",
        exists=True,
        dir_okay=False,
        readable=True,
        help="OpenAPI 3.x or Swagger 2.0 document (YAML or JSON).",
    ),
    output: Path = typer.Option(
        DEFAULT_MOCK_ROOT,
        "--output",
        "-o",
        help="Root directory that receives the generated mock tree.",
    ),
) -> None:
    """Write one directory of response files per route of the specification."""

    sink = DiagnosticSink()
    try:
        result = asyncio.run(SpecPipeline(sink).run(swagger, output))
    except SpecParseError as exc:
        raise typer.BadParameter(str(exc), param_hint="--swagger") from exc
    except StorageError as exc:
        typer.secho(f"Failed to write mocks: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    typer.secho(
        f"Generated {result.files_created} files for {result.paths_processed} routes -> {result.output_directory}",
        fg=typer.colors.GREEN,
    )
    for warning in result.warnings:
        typer.secho(f"  warning [{warning.code}] {warning.message}", fg=typer.colors.YELLOW)


@app.command()
def serve(
    ctx: typer.Context,
    mock_root: Optional[Path] = typer.Option(None, "--mock-root", help="Mock tree to serve."),
    host: Optional[str] = typer.Option(None, "--host", help="Bind host."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port."),
) -> None:
    """Serve the mock tree and the /_mock management API."""

    base = ctx.obj or load_settings()
    settings = base.model_copy(
        update={
            key: value
            for key, value in {"mock_root": mock_root, "host": host, "port": port}.items()
            if value is not None
        }
    )
    if not 1 <= settings.port <= 65535:
        raise typer.BadParameter("Port must be between 1 and 65535", param_hint="--port")
    serve_app(settings)


@app.command("create-endpoint")
def create_endpoint(
    ctx: typer.Context,
    path: str = typer.Option(..., "--path", help="API path, e.g. /users/{id}."),
    method: str = typer.Option(..., "--method", "-m", help="GET, POST, PUT, DELETE or PATCH."),
    mock_root: Optional[Path] = typer.Option(None, "--mock-root", help="Mock tree to add the endpoint to."),
) -> None:
    """Create one endpoint directory with default response files."""

    settings = ctx.obj or load_settings()
    if mock_root is not None:
        settings = settings.model_copy(update={"mock_root": mock_root})

    async def _create():
        router = RuntimeRouter(settings.mock_root)
        registry = EndpointRegistry(router, base_url=settings.base_url)
        return await registry.create_endpoint(path, method.upper())

    try:
        result = asyncio.run(_create())
    except EndpointValidationError as exc:
        messages = "; ".join(f"{item['field']}: {item['message']}" for item in exc.details)
        raise typer.BadParameter(messages) from exc
    except DuplicateEndpointError as exc:
        typer.secho(f"Endpoint already exists: {exc.directory}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except StorageError as exc:
        typer.secho(f"Failed to create endpoint files: {exc.cause}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    typer.secho(f"Endpoint created -> {result.mock_directory}", fg=typer.colors.GREEN)
    typer.echo(json.dumps(result.as_serializable(), indent=2))


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
