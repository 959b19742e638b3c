"""Specification-to-mock generation: parse, synthesize, lay out and write every route."""

from __future__ import annotations

from pathlib import Path

import structlog

from .diagnostics import DiagnosticSink
from .errors import ReservedPathError
from .layout import map_to_directory
from .logging_utils import LOGGER_NAME
from .materializer import FileMaterializer, MockResponse
from .models import HTTP_METHODS, GenerationResult, RouteDefinition, SpecDocument
from .parser import load_spec
from .storage import FileStore
from .synthesizer import DEFAULT_RESPONSES, MockSynthesizer

LOGGER = structlog.get_logger(LOGGER_NAME)


def iter_routes(document: SpecDocument) -> list[RouteDefinition]:
    """Routes in document order; unsupported method keys are skipped."""

    routes: list[RouteDefinition] = []
    for api_path, operations in document.paths.items():
        for method, operation in operations.items():
            if method not in HTTP_METHODS:
                continue
            routes.append(
                RouteDefinition(
                    path=api_path,
                    method=method,
                    responses=list(operation.responses or DEFAULT_RESPONSES),
                )
            )
    return routes


class SpecPipeline:
    """Generates a mock tree from one specification document."""

    def __init__(self, diagnostics: DiagnosticSink | None = None) -> None:
        self.diagnostics = diagnostics or DiagnosticSink()

    async def run(self, spec_path: Path, output_root: Path) -> GenerationResult:
        logger = LOGGER.bind(spec=str(spec_path), output=str(output_root))
        logger.info("pipeline_started")
        # SpecParseError propagates: a malformed document aborts the whole run
        document = load_spec(spec_path)
        result = await self.generate(document, output_root)
        logger.info(
            "pipeline_completed",
            files_created=result.files_created,
            paths_processed=result.paths_processed,
            warnings=len(result.warnings),
        )
        return result

    async def generate(self, document: SpecDocument, output_root: Path) -> GenerationResult:
        materializer = FileMaterializer(FileStore(output_root))
        files_created = 0
        paths_processed = 0

        for route in iter_routes(document):
            sink = self.diagnostics.bind(route=f"{route.method} {route.path}")
            try:
                directory = map_to_directory(output_root, route.path, route.method)
            except ReservedPathError as exc:
                sink.warning("route_reserved", str(exc))
                continue
            synthesizer = MockSynthesizer(document, sink)
            responses = [
                MockResponse(item.status_code, item.description, synthesizer.response_body(item))
                for item in route.responses
            ]
            created = await materializer.materialize(directory, responses)
            LOGGER.info("endpoint_generated", method=route.method, path=route.path, files=len(created))
            files_created += len(created)
            paths_processed += 1

        return GenerationResult(
            files_created=files_created,
            paths_processed=paths_processed,
            output_directory=str(output_root),
            warnings=list(self.diagnostics.warnings),
        )
