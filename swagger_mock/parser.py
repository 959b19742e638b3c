"""Helpers for turning OpenAPI/Swagger documents into SpecDocument objects."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import SpecParseError
from .models import (
    ArraySchema,
    BooleanSchema,
    LiteralSchema,
    NumberSchema,
    ObjectSchema,
    Operation,
    RefSchema,
    ResponseDefinition,
    SchemaNode,
    SpecDocument,
    StringSchema,
    UnknownSchema,
)

JSON_MEDIA_TYPE = "application/json"
_MAX_RESPONSE_REF_HOPS = 16


def load_spec(spec_path: Path) -> SpecDocument:
    """Read and parse a YAML or JSON specification file."""

    try:
        raw_text = spec_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Cannot read specification {spec_path}: {exc}") from exc
    return parse_spec(raw_text, source_path=str(spec_path))


def parse_spec(raw_text: str, *, source_path: str = "<memory>") -> SpecDocument:
    """Parse document text; JSON is accepted since it is a subset of YAML."""

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise SpecParseError(f"{source_path} is not valid YAML/JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SpecParseError("Expected OpenAPI/Swagger document to be an object")
    if "openapi" not in data and "swagger" not in data:
        raise SpecParseError("Document is not an OpenAPI/Swagger specification")
    try:
        return build_document(data, source_path=source_path)
    except ValidationError as exc:
        raise SpecParseError(f"{source_path} has an unsupported structure: {exc}") from exc


def build_document(data: dict[str, Any], *, source_path: str = "<memory>") -> SpecDocument:
    raw_paths = data.get("paths")
    if not isinstance(raw_paths, dict):
        raise SpecParseError("Specification must declare a 'paths' mapping")

    info = data.get("info") if isinstance(data.get("info"), dict) else {}
    title = str(info.get("title") or Path(source_path).stem)
    version = str(info.get("version", "0"))

    paths: dict[str, dict[str, Operation]] = {}
    for raw_path, path_item in raw_paths.items():
        if not isinstance(path_item, dict):
            continue
        operations: dict[str, Operation] = {}
        for method, entry in path_item.items():
            # 'parameters', 'servers' and friends are lists or strings
            if not isinstance(entry, dict):
                continue
            operations[str(method).upper()] = _parse_operation(entry, data)
        paths[str(raw_path)] = operations

    return SpecDocument(
        title=title,
        version=version,
        source_path=source_path,
        paths=paths,
        components=_parse_components(data),
    )


def parse_schema(raw: Any) -> SchemaNode:
    """Convert one raw JSON-schema mapping into a tagged SchemaNode."""

    if not isinstance(raw, dict):
        return UnknownSchema()
    if "$ref" in raw:
        return RefSchema(target=str(raw["$ref"]))
    if "example" in raw:
        return LiteralSchema(example=raw["example"])

    schema_type = _primary_type(raw.get("type"))
    if schema_type == "object" or "properties" in raw:
        properties = raw.get("properties") if isinstance(raw.get("properties"), dict) else {}
        return ObjectSchema(properties={str(name): parse_schema(prop) for name, prop in properties.items()})
    if schema_type == "array":
        items = raw.get("items")
        return ArraySchema(items=parse_schema(items) if isinstance(items, dict) else None)
    if schema_type == "string":
        enum = raw.get("enum")
        fmt = raw.get("format")
        return StringSchema(
            enum=list(enum) if isinstance(enum, list) and enum else None,
            format=str(fmt) if fmt is not None else None,
        )
    if schema_type in ("integer", "number"):
        return NumberSchema(
            kind=schema_type,
            minimum=_number_or_none(raw.get("minimum")),
            maximum=_number_or_none(raw.get("maximum")),
        )
    if schema_type == "boolean":
        return BooleanSchema()
    return UnknownSchema(declared_type=schema_type)


def _primary_type(value: Any) -> str | None:
    # OpenAPI 3.1 allows type lists such as ["string", "null"]
    if isinstance(value, list):
        value = next((item for item in value if item != "null"), None)
    return str(value) if value is not None else None


def _number_or_none(value: Any) -> float | int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _parse_components(data: dict[str, Any]) -> dict[str, dict[str, SchemaNode]]:
    sections: dict[str, dict[str, SchemaNode]] = {}
    raw_components = data.get("components")
    if isinstance(raw_components, dict):
        for section, entries in raw_components.items():
            if isinstance(entries, dict):
                sections[str(section)] = {str(name): parse_schema(raw) for name, raw in entries.items()}
    # Swagger 2.0 keeps schemas under a top-level 'definitions' mapping
    definitions = data.get("definitions")
    if isinstance(definitions, dict):
        sections.setdefault("definitions", {}).update(
            {str(name): parse_schema(raw) for name, raw in definitions.items()}
        )
    return sections


def _parse_operation(entry: dict[str, Any], data: dict[str, Any]) -> Operation:
    raw_responses = entry.get("responses")
    responses: list[ResponseDefinition] | None = None
    if isinstance(raw_responses, dict) and raw_responses:
        responses = [
            _parse_response(str(status), _follow_response_ref(raw, data))
            for status, raw in raw_responses.items()
        ]
    summary = entry.get("summary") or entry.get("description")
    operation_id = entry.get("operationId")
    return Operation(
        summary=str(summary) if summary is not None else None,
        operation_id=str(operation_id) if operation_id is not None else None,
        responses=responses,
    )


def _parse_response(status: str, raw: Any) -> ResponseDefinition:
    if not isinstance(raw, dict):
        return ResponseDefinition(status_code=status)
    description = raw.get("description")
    raw_schema = None
    content = raw.get("content")
    if isinstance(content, dict) and isinstance(content.get(JSON_MEDIA_TYPE), dict):
        raw_schema = content[JSON_MEDIA_TYPE].get("schema")
    elif "schema" in raw:
        raw_schema = raw["schema"]
    return ResponseDefinition(
        status_code=status,
        description=str(description) if description is not None else None,
        body_schema=parse_schema(raw_schema) if isinstance(raw_schema, dict) else None,
    )


def _follow_response_ref(raw: Any, data: dict[str, Any]) -> Any:
    """Inline ``#/components/responses/...`` references; unresolvable ones stay as-is."""

    seen: set[str] = set()
    while isinstance(raw, dict) and isinstance(raw.get("$ref"), str) and len(seen) < _MAX_RESPONSE_REF_HOPS:
        ref = raw["$ref"]
        if ref in seen or not ref.startswith("#/"):
            break
        seen.add(ref)
        node: Any = data
        for segment in ref[2:].split("/"):
            node = node.get(segment) if isinstance(node, dict) else None
        if node is None:
            break
        raw = node
    return raw
