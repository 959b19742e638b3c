from pathlib import Path

import pytest

from swagger_mock.errors import SpecParseError
from swagger_mock.models import (
    ArraySchema,
    LiteralSchema,
    NumberSchema,
    ObjectSchema,
    RefSchema,
    StringSchema,
    UnknownSchema,
)
from swagger_mock.parser import load_spec, parse_schema, parse_spec
from swagger_mock.pipeline import SpecPipeline

OPENAPI_DOC = """
openapi: 3.0.0
info:
  title: Pets
  version: 1.2.0
paths:
  /pets:
    parameters:
      - name: limit
        in: query
    get:
      summary: List pets
      responses:
        '200':
          description: OK
          content:
            application/json:
              schema:
                type: array
                items:
                  $ref: '#/components/schemas/Pet'
        '404':
          $ref: '#/components/responses/NotFound'
    post:
      summary: Create pet
components:
  schemas:
    Pet:
      type: object
      properties:
        id:
          type: integer
          minimum: 1
  responses:
    NotFound:
      description: Not found
      content:
        application/json:
          schema:
            type: object
            properties:
              error:
                type: string
"""


def test_parse_spec_reads_paths_and_components() -> None:
    document = parse_spec(OPENAPI_DOC, source_path="pets.yaml")

    assert document.title == "Pets"
    assert document.version == "1.2.0"
    assert set(document.paths["/pets"]) == {"GET", "POST"}
    get = document.paths["/pets"]["GET"]
    assert [item.status_code for item in get.responses] == ["200", "404"]
    assert isinstance(get.responses[0].body_schema, ArraySchema)
    assert get.responses[0].body_schema.items == RefSchema(target="#/components/schemas/Pet")
    assert get.responses[1].description == "Not found"
    assert isinstance(get.responses[1].body_schema, ObjectSchema)
    assert document.paths["/pets"]["POST"].responses is None
    assert isinstance(document.components["schemas"]["Pet"], ObjectSchema)


def test_parse_spec_accepts_swagger2_definitions() -> None:
    document = parse_spec(
        """
        {"swagger": "2.0",
         "paths": {"/users": {"get": {"responses": {"200": {"description": "ok",
             "schema": {"$ref": "#/definitions/User"}}}}}},
         "definitions": {"User": {"properties": {"name": {"type": "string"}}}}}
        """,
        source_path="users.json",
    )

    assert document.title == "users"
    assert document.paths["/users"]["GET"].responses[0].body_schema == RefSchema(target="#/definitions/User")
    assert isinstance(document.components["definitions"]["User"], ObjectSchema)


@pytest.mark.parametrize(
    "text",
    [
        "openapi: [unterminated",
        "- just\n- a list\n",
        "title: not a spec\npaths: {}\n",
        "openapi: 3.0.0\ninfo: {title: x}\n",
    ],
)
def test_parse_spec_rejects_malformed_documents(text: str) -> None:
    with pytest.raises(SpecParseError):
        parse_spec(text)


def test_load_spec_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SpecParseError):
        load_spec(tmp_path / "missing.yaml")


def test_parse_schema_precedence() -> None:
    assert parse_schema({"type": "string", "example": "Rex"}) == LiteralSchema(example="Rex")
    assert parse_schema({"$ref": "#/x", "example": 1}) == RefSchema(target="#/x")
    assert isinstance(parse_schema({"properties": {}}), ObjectSchema)
    assert parse_schema({"type": "array"}) == ArraySchema(items=None)
    assert parse_schema({"type": ["integer", "null"], "maximum": 10}) == NumberSchema(kind="integer", maximum=10)
    assert parse_schema({"type": "string", "enum": []}) == StringSchema()
    assert parse_schema({"type": "file"}) == UnknownSchema(declared_type="file")
    assert parse_schema("nonsense") == UnknownSchema()


def test_non_string_operation_metadata_is_coerced() -> None:
    document = parse_spec(
        """
        openapi: 3.0.0
        paths:
          /reports:
            get:
              summary: 2024
              operationId: 17
              responses:
                '200': {description: 200}
        """
    )

    operation = document.paths["/reports"]["GET"]
    assert operation.summary == "2024"
    assert operation.operation_id == "17"
    assert operation.responses[0].description == "200"


@pytest.mark.asyncio
async def test_pipeline_accepts_numeric_summary(tmp_path: Path) -> None:
    spec = tmp_path / "reports.yaml"
    spec.write_text("openapi: 3.0.0\npaths:\n  /a:\n    get:\n      summary: 2024\n", encoding="utf-8")

    result = await SpecPipeline().run(spec, tmp_path / "mock")

    assert result.paths_processed == 1
