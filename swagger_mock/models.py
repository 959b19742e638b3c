"""Pydantic models for specification documents, mock files and runtime state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .diagnostics import Diagnostic

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
CREATABLE_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")


class _Schema(BaseModel):
    model_config = ConfigDict(frozen=True)


class RefSchema(_Schema):
    """Pointer to a component, e.g. ``#/components/schemas/Pet``."""

    kind: Literal["ref"] = "ref"
    target: str


class ObjectSchema(_Schema):
    kind: Literal["object"] = "object"
    properties: dict[str, SchemaNode] = Field(default_factory=dict)


class ArraySchema(_Schema):
    kind: Literal["array"] = "array"
    items: SchemaNode | None = None


class StringSchema(_Schema):
    kind: Literal["string"] = "string"
    enum: list[Any] | None = None
    format: str | None = None


class NumberSchema(_Schema):
    kind: Literal["number", "integer"] = "number"
    minimum: float | int | None = None
    maximum: float | int | None = None


class BooleanSchema(_Schema):
    kind: Literal["boolean"] = "boolean"


class LiteralSchema(_Schema):
    """Any schema that declares an ``example``; the example is used verbatim."""

    kind: Literal["literal"] = "literal"
    example: Any = None


class UnknownSchema(_Schema):
    """Shape the parser did not recognise; synthesizes to ``None``."""

    kind: Literal["unknown"] = "unknown"
    declared_type: str | None = None


SchemaNode = Annotated[
    Union[
        RefSchema,
        ObjectSchema,
        ArraySchema,
        StringSchema,
        NumberSchema,
        BooleanSchema,
        LiteralSchema,
        UnknownSchema,
    ],
    Field(discriminator="kind"),
]

ObjectSchema.model_rebuild()
ArraySchema.model_rebuild()


class ResponseDefinition(BaseModel):
    """One declared response of an operation.

    ``body_schema`` is ``None`` when the response carries no ``application/json``
    schema; such responses get a generic body.
    """

    model_config = ConfigDict(frozen=True)

    status_code: str
    description: str | None = None
    body_schema: SchemaNode | None = None


class Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str | None = None
    operation_id: str | None = None
    # None when the source operation declares no ``responses`` at all
    responses: list[ResponseDefinition] | None = None


class SpecDocument(BaseModel):
    """Parsed OpenAPI/Swagger document restricted to what mock synthesis needs."""

    model_config = ConfigDict(frozen=True)

    title: str
    version: str
    source_path: str
    paths: dict[str, dict[str, Operation]] = Field(default_factory=dict)
    components: dict[str, dict[str, SchemaNode]] = Field(default_factory=dict)


class RouteDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    method: str
    responses: list[ResponseDefinition]


class HeaderEntry(BaseModel):
    key: str
    value: str


class MockResponseFile(BaseModel):
    """Content of one ``<description>-<status>.json`` file."""

    header: list[HeaderEntry] = Field(default_factory=list)
    body: Any = None


class EndpointStatus(BaseModel):
    """Content of ``status.json``: active response file and simulated latency."""

    model_config = ConfigDict(populate_by_name=True)

    selected: str
    delay_millisecond: int = Field(0, ge=0, alias="delayMillisecond")

    def as_serializable(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GenerationResult(BaseModel):
    files_created: int = 0
    paths_processed: int = 0
    output_directory: str
    warnings: list[Diagnostic] = Field(default_factory=list)


class CreateEndpointResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    method: str
    files_created: list[str] = Field(alias="filesCreated")
    available_at: str = Field(alias="availableAt")
    mock_directory: str = Field(alias="mockDirectory")

    def as_serializable(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RequestEvent(BaseModel):
    """One request answered (or rejected) by the runtime router."""

    method: str
    path: str
    status: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float
    endpoint: str | None = None


@dataclass
class RuntimeEndpoint:
    """Live registration of one endpoint directory."""

    path: str
    method: str
    directory: Path
    request_count: int = 0
    segments: list[str] = field(init=False)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.segments = [part for part in self.path.strip("/").split("/") if part]

    @property
    def key(self) -> str:
        return f"{self.method}:{self.path}"

    @property
    def is_parameterized(self) -> bool:
        return any(part.startswith("{") and part.endswith("}") for part in self.segments)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EndpointConfiguration(BaseModel):
    """The mock file and delay one scenario selects for one endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    method: str
    selected_mock_file: str = Field(alias="selectedMockFile")
    delay_millisecond: int = Field(0, ge=0, alias="delayMillisecond")

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"


class ScenarioMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(default_factory=_utc_now, alias="createdAt")
    last_modified: datetime = Field(default_factory=_utc_now, alias="lastModified")
    version: int = Field(1, ge=1)


class Scenario(BaseModel):
    """Named bundle of endpoint selections, stored as ``<scenario dir>/<name>.json``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    endpoint_configurations: list[EndpointConfiguration] = Field(alias="endpointConfigurations")
    metadata: ScenarioMetadata = Field(default_factory=ScenarioMetadata)

    def as_serializable(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ActiveScenarioReference(BaseModel):
    """Content of ``_active.json``."""

    model_config = ConfigDict(populate_by_name=True)

    active_scenario: str | None = Field(None, alias="activeScenario")
    last_updated: datetime = Field(default_factory=_utc_now, alias="lastUpdated")

    def as_serializable(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ScenarioApplicationResult(BaseModel):
    successes: list[str] = Field(default_factory=list)
    failures: list[dict[str, str]] = Field(default_factory=list)
