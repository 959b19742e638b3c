"""Collector for non-fatal problems found while synthesizing mocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from .logging_utils import LOGGER_NAME


@dataclass(frozen=True)
class Diagnostic:
    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class DiagnosticSink:
    """Records warnings for one pipeline run and forwards them to a structlog logger.

    A sink is passed explicitly through the resolver, synthesizer and pipeline;
    callers inspect ``warnings`` after the run instead of scraping log output.
    """

    def __init__(self, logger: Any | None = None) -> None:
        self._logger = logger or structlog.get_logger(LOGGER_NAME)
        self.warnings: list[Diagnostic] = []

    def bind(self, **context: Any) -> "DiagnosticSink":
        """Return a sink sharing this sink's record list with extra log context."""

        child = DiagnosticSink(self._logger.bind(**context))
        child.warnings = self.warnings
        return child

    def warning(self, code: str, message: str, **context: Any) -> None:
        self.warnings.append(Diagnostic(code=code, message=message, context=context))
        self._logger.warning(code, message=message, **context)

    def __len__(self) -> int:
        return len(self.warnings)
