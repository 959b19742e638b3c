from swagger_mock.diagnostics import DiagnosticSink
from swagger_mock.models import ResponseDefinition
from swagger_mock.parser import build_document, parse_schema, parse_spec
from swagger_mock.resolver import MAX_REF_DEPTH
from swagger_mock.synthesizer import MockSynthesizer, synthesize

CYCLIC_DOC = """
openapi: 3.0.0
info: {title: Tree, version: '1'}
paths: {}
components:
  schemas:
    Node:
      type: object
      properties:
        name: {type: string}
        parent: {$ref: '#/components/schemas/Node'}
        children:
          type: array
          items: {$ref: '#/components/schemas/Node'}
    A: {$ref: '#/components/schemas/B'}
    B: {$ref: '#/components/schemas/A'}
"""


def test_value_rules() -> None:
    schema = parse_schema(
        {
            "type": "object",
            "properties": {
                "name": {"type": "string", "example": "Rex"},
                "kind": {"type": "string", "enum": ["dog", "cat"]},
                "born": {"type": "string", "format": "date"},
                "email": {"type": "string", "format": "email"},
                "nick": {"type": "string", "format": "hostname"},
                "age": {"type": "integer", "minimum": 1},
                "weight": {"type": "number", "maximum": 9},
                "count": {"type": "integer"},
                "alive": {"type": "boolean"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "blob": {"type": "array"},
            },
        }
    )

    assert synthesize(schema) == {
        "name": "Rex",
        "kind": "dog",
        "born": "2023-01-01",
        "email": "user@example.com",
        "nick": "string",
        "age": 1,
        "weight": 4,
        "count": 0,
        "alive": True,
        "tags": ["string"],
        "blob": None,
    }


def test_synthesis_is_deterministic() -> None:
    document = parse_spec(CYCLIC_DOC)
    node = document.components["schemas"]["Node"]

    first = MockSynthesizer(document).synthesize(node)
    second = MockSynthesizer(document).synthesize(node)

    assert first == second


def test_cycles_are_bounded_and_reported() -> None:
    document = parse_spec(CYCLIC_DOC)
    sink = DiagnosticSink()
    synthesizer = MockSynthesizer(document, sink)

    node_value = synthesizer.synthesize(parse_schema({"$ref": "#/components/schemas/Node"}))
    mutual = synthesizer.synthesize(parse_schema({"$ref": "#/components/schemas/A"}))

    assert node_value == {"name": "string", "parent": None, "children": [None]}
    assert mutual is None
    assert {item.code for item in sink.warnings} == {"schema_ref_cycle"}


def test_unresolved_ref_warns_and_yields_null() -> None:
    document = parse_spec(CYCLIC_DOC)
    sink = DiagnosticSink()

    value = MockSynthesizer(document, sink).synthesize(parse_schema({"$ref": "#/components/schemas/Missing"}))

    assert value is None
    assert [item.code for item in sink.warnings] == ["schema_ref_unresolved"]
    assert sink.warnings[0].context["ref"] == "#/components/schemas/Missing"


def test_unknown_shape_warns() -> None:
    sink = DiagnosticSink()

    assert synthesize(parse_schema({"type": "file"}), diagnostics=sink) is None
    assert sink.warnings[0].code == "schema_shape_unrecognized"


def test_schema_less_response_gets_generic_body() -> None:
    document = parse_spec(CYCLIC_DOC)
    synthesizer = MockSynthesizer(document)

    assert synthesizer.response_body(ResponseDefinition(status_code="200", description="OK")) == {
        "success": True,
        "message": "OK",
        "status": 200,
    }
    assert synthesizer.response_body(ResponseDefinition(status_code="404")) == {
        "success": False,
        "message": "Response",
        "status": 404,
    }


def _linked_components(count: int) -> dict:
    schemas = {}
    for index in range(count):
        schemas[f"S{index}"] = {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                **{
                    f"link{offset}": {"$ref": f"#/components/schemas/S{(index + offset) % count}"}
                    for offset in (1, 2, 3)
                },
            },
        }
    return schemas


def _count_objects(value) -> int:
    if isinstance(value, dict):
        return 1 + sum(_count_objects(item) for item in value.values())
    if isinstance(value, list):
        return sum(_count_objects(item) for item in value)
    return 0


def test_densely_linked_schemas_stay_bounded() -> None:
    document = build_document(
        {"openapi": "3.0.0", "paths": {}, "components": {"schemas": _linked_components(30)}}
    )
    sink = DiagnosticSink()

    body = MockSynthesizer(document, sink).synthesize(parse_schema({"$ref": "#/components/schemas/S0"}))

    # one root plus three children per level, cut after MAX_REF_DEPTH refs
    assert _count_objects(body) == sum(3**level for level in range(MAX_REF_DEPTH))
    assert body["link1"]["link1"]["link1"]["link1"] is None
    codes = [item.code for item in sink.warnings]
    assert "schema_ref_depth_exceeded" in codes
    assert len(codes) == len(set((item.code, item.context["ref"]) for item in sink.warnings))


def test_chains_within_the_depth_limit_are_expanded() -> None:
    document = build_document(
        {
            "openapi": "3.0.0",
            "paths": {},
            "components": {
                "schemas": {
                    "Order": {"properties": {"customer": {"$ref": "#/components/schemas/Customer"}}},
                    "Customer": {"properties": {"address": {"$ref": "#/components/schemas/Address"}}},
                    "Address": {"properties": {"city": {"type": "string", "example": "Oslo"}}},
                }
            },
        }
    )

    body = synthesize(parse_schema({"$ref": "#/components/schemas/Order"}), document)

    assert body == {"customer": {"address": {"city": "Oslo"}}}
