"""Deterministic mock values from resolved schema nodes."""

from __future__ import annotations

import math
from typing import Any

from .diagnostics import DiagnosticSink
from .models import (
    ArraySchema,
    BooleanSchema,
    LiteralSchema,
    NumberSchema,
    ObjectSchema,
    ResponseDefinition,
    SchemaNode,
    SpecDocument,
    StringSchema,
    UnknownSchema,
)
from .resolver import SchemaResolver

FORMAT_EXAMPLES: dict[str, str] = {
    "date-time": "2023-01-01T00:00:00Z",
    "date": "2023-01-01",
    "email": "user@example.com",
    "uri": "https://example.com",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
}

_ERROR_SCHEMA = ObjectSchema(properties={"error": StringSchema(), "code": StringSchema()})

# Used when an operation declares no responses
DEFAULT_RESPONSES: tuple[ResponseDefinition, ...] = (
    ResponseDefinition(
        status_code="200",
        description="Successful operation",
        body_schema=ObjectSchema(properties={"success": BooleanSchema(), "message": StringSchema()}),
    ),
    ResponseDefinition(status_code="400", description="Bad request", body_schema=_ERROR_SCHEMA),
    ResponseDefinition(status_code="404", description="Not found", body_schema=_ERROR_SCHEMA),
    ResponseDefinition(status_code="500", description="Internal server error", body_schema=_ERROR_SCHEMA),
)

_EMPTY_DOCUMENT = SpecDocument(title="defaults", version="0", source_path="<defaults>")


class MockSynthesizer:
    """Builds JSON-compatible values for schema nodes of one document.

    Output depends only on the schema, so generated mocks are identical
    across runs.
    """

    def __init__(self, document: SpecDocument, diagnostics: DiagnosticSink | None = None) -> None:
        self._diagnostics = diagnostics or DiagnosticSink()
        self._resolver = SchemaResolver(document, self._diagnostics)

    def synthesize(self, node: SchemaNode | None, visited: frozenset[str] = frozenset()) -> Any:
        resolution = self._resolver.resolve(node, visited)
        node, visited = resolution.node, resolution.visited
        if node is None:
            return None

        if isinstance(node, LiteralSchema):
            return node.example
        if isinstance(node, ObjectSchema):
            return {name: self.synthesize(prop, visited) for name, prop in node.properties.items()}
        if isinstance(node, ArraySchema):
            if node.items is None:
                return None
            return [self.synthesize(node.items, visited)]
        if isinstance(node, StringSchema):
            if node.enum:
                return node.enum[0]
            if node.format in FORMAT_EXAMPLES:
                return FORMAT_EXAMPLES[node.format]
            return "string"
        if isinstance(node, NumberSchema):
            if node.minimum is not None:
                return node.minimum
            if node.maximum is not None:
                return math.floor(node.maximum / 2)
            return 0
        if isinstance(node, BooleanSchema):
            return True
        if isinstance(node, UnknownSchema):
            self._diagnostics.warning(
                "schema_shape_unrecognized",
                "Unsupported schema, substituting null",
                declared_type=node.declared_type,
            )
        return None

    def response_body(self, response: ResponseDefinition) -> Any:
        """Body for one declared response; schema-less responses get a generic payload."""

        if response.body_schema is not None:
            return self.synthesize(response.body_schema)
        return {
            "success": response.status_code == "200",
            "message": response.description or "Response",
            "status": int(response.status_code) if response.status_code.isdigit() else None,
        }


def synthesize(
    node: SchemaNode | None,
    document: SpecDocument | None = None,
    diagnostics: DiagnosticSink | None = None,
) -> Any:
    """Synthesize a single node; refs resolve against ``document`` when given."""

    return MockSynthesizer(document or _EMPTY_DOCUMENT, diagnostics).synthesize(node)
