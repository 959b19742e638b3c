import json
from pathlib import Path

import pytest

from swagger_mock.diagnostics import DiagnosticSink
from swagger_mock.errors import SpecParseError
from swagger_mock.parser import parse_spec
from swagger_mock.pipeline import SpecPipeline, iter_routes

PETS_DOC = """
openapi: 3.0.0
info: {title: Pets, version: '1'}
paths:
  /pets/{petId}:
    parameters:
      - {name: petId, in: path, required: true}
    get:
      responses:
        '200':
          description: OK
          content:
            application/json:
              schema:
                type: object
                properties:
                  id: {type: integer, minimum: 1}
    head:
      responses:
        '204': {description: No content}
    options: {}
    trace:
      responses:
        '200': {description: ignored}
  /_mock/internal:
    get:
      responses:
        '200': {description: reserved}
"""


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _write_spec(tmp_path: Path, text: str = PETS_DOC) -> Path:
    target = tmp_path / "pets.yaml"
    target.write_text(text, encoding="utf-8")
    return target


@pytest.mark.asyncio
async def test_pipeline_writes_one_directory_per_route(tmp_path: Path) -> None:
    output = tmp_path / "mock"
    sink = DiagnosticSink()

    result = await SpecPipeline(sink).run(_write_spec(tmp_path), output)

    get_dir = output / "pets" / "{petId}" / "GET"
    assert _read(get_dir / "ok-200.json") == {"header": [], "body": {"id": 1}}
    assert _read(output / "pets" / "{petId}" / "HEAD" / "no-content-204.json") == {
        "header": [],
        "body": {"success": False, "message": "No content", "status": 204},
    }
    assert sorted(path.name for path in (output / "pets" / "{petId}").iterdir()) == ["GET", "HEAD", "OPTIONS"]
    assert not (output / "_mock").exists()
    assert result.paths_processed == 3
    assert result.files_created == 1 + 1 + 4
    assert [item.code for item in result.warnings] == ["route_reserved"]


@pytest.mark.asyncio
async def test_operation_without_responses_gets_default_set(tmp_path: Path) -> None:
    output = tmp_path / "mock"

    await SpecPipeline().run(_write_spec(tmp_path), output)

    options_dir = output / "pets" / "{petId}" / "OPTIONS"
    assert sorted(path.name for path in options_dir.iterdir()) == [
        "bad-request-400.json",
        "internal-server-error-500.json",
        "not-found-404.json",
        "successful-operation-200.json",
    ]
    assert _read(options_dir / "successful-operation-200.json")["body"] == {"success": True, "message": "string"}
    assert _read(options_dir / "not-found-404.json")["body"] == {"error": "string", "code": "string"}


@pytest.mark.asyncio
async def test_pipeline_is_repeatable(tmp_path: Path) -> None:
    spec_path = _write_spec(tmp_path)
    output = tmp_path / "mock"

    await SpecPipeline().run(spec_path, output)
    first = _read(output / "pets" / "{petId}" / "GET" / "ok-200.json")
    await SpecPipeline().run(spec_path, output)

    assert _read(output / "pets" / "{petId}" / "GET" / "ok-200.json") == first


@pytest.mark.asyncio
async def test_malformed_document_aborts_without_output(tmp_path: Path) -> None:
    output = tmp_path / "mock"

    with pytest.raises(SpecParseError):
        await SpecPipeline().run(_write_spec(tmp_path, "openapi: 3.0.0\npaths: [1, 2]\n"), output)

    assert not output.exists()


def test_iter_routes_skips_unsupported_methods() -> None:
    routes = iter_routes(parse_spec(PETS_DOC))

    assert [(route.method, route.path) for route in routes] == [
        ("GET", "/pets/{petId}"),
        ("HEAD", "/pets/{petId}"),
        ("OPTIONS", "/pets/{petId}"),
        ("GET", "/_mock/internal"),
    ]
