"""Resolution of ``$ref`` schema nodes against a document's components."""

from __future__ import annotations

from dataclasses import dataclass

from .diagnostics import DiagnosticSink
from .models import RefSchema, SchemaNode, SpecDocument

# Refs followed on one path before a branch is cut off
MAX_REF_DEPTH = 4


@dataclass(frozen=True)
class Resolution:
    """Concrete node (``None`` when unresolvable, cyclic or too deep) plus the refs followed to reach it."""

    node: SchemaNode | None
    visited: frozenset[str]


class SchemaResolver:
    """Follows reference chains while tracking the targets seen on the current path.

    A target that shows up twice on one path is a cycle; that branch resolves
    to ``None`` so synthesis of self-referencing schemas stays finite. Paths
    that pass through more than ``max_depth`` refs are cut the same way, which
    keeps densely linked component sets from expanding exponentially.
    """

    def __init__(
        self,
        document: SpecDocument,
        diagnostics: DiagnosticSink | None = None,
        *,
        max_depth: int = MAX_REF_DEPTH,
    ) -> None:
        self._document = document
        self._diagnostics = diagnostics or DiagnosticSink()
        self._max_depth = max_depth
        self._reported: set[tuple[str, str]] = set()

    def resolve(self, node: SchemaNode | None, visited: frozenset[str] = frozenset()) -> Resolution:
        while isinstance(node, RefSchema):
            target = node.target
            if target in visited:
                self._warn_once("schema_ref_cycle", "Cyclic $ref, substituting null", target, seen=sorted(visited))
                return Resolution(None, visited)
            if len(visited) >= self._max_depth:
                self._warn_once(
                    "schema_ref_depth_exceeded",
                    f"More than {self._max_depth} nested $refs, substituting null",
                    target,
                )
                return Resolution(None, visited)
            visited = visited | {target}
            resolved = self.lookup(target)
            if resolved is None:
                self._warn_once("schema_ref_unresolved", "Could not resolve $ref", target)
                return Resolution(None, visited)
            node = resolved
        return Resolution(node, visited)

    def lookup(self, target: str) -> SchemaNode | None:
        """Find ``#/components/<section>/<name>`` (or ``#/<section>/<name>``) in the component set."""

        if not target.startswith("#/"):
            return None
        segments = [_unescape(segment) for segment in target[2:].split("/")]
        if segments and segments[0] == "components":
            segments = segments[1:]
        if len(segments) != 2:
            return None
        section, name = segments
        return self._document.components.get(section, {}).get(name)

    def _warn_once(self, code: str, message: str, target: str, **context) -> None:
        # one record per (problem, ref) for the lifetime of this resolver
        if (code, target) in self._reported:
            return
        self._reported.add((code, target))
        self._diagnostics.warning(code, message, ref=target, **context)


def _unescape(segment: str) -> str:
    # JSON pointer escaping
    return segment.replace("~1", "/").replace("~0", "~")
