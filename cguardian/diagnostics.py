"""
Diagnostics — the result types of one analysis run.

  • Diagnostic      — one positioned finding plus an optional remediation hint
  • AnalysisResult  — lexical + syntactic/semantic findings of a run
  • DiagnosticSink  — append-only accumulator used by the lexer and parser

Diagnostics are accumulated, never raised: every check appends a finding
and the caller continues with a recovery value.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    LEXICAL = "lexical"
    SYNTAX = "syntax"
    SEMANTIC = "semantic"


class Diagnostic(BaseModel):
    message: str
    suggestion: str = ""
    line: int = 0
    column: int = 0
    kind: DiagnosticKind = DiagnosticKind.SYNTAX

    @property
    def text(self) -> str:
        """Display form, e.g. ``Line 3:5 - Undeclared variable 'y'``."""
        if self.line <= 0:
            return self.message
        return f"Line {self.line}:{self.column} - {self.message}"


class AnalysisResult(BaseModel):
    lexical: List[Diagnostic] = Field(default_factory=list)
    semantic: List[Diagnostic] = Field(default_factory=list)
    total: int = 0

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.lexical + self.semantic

    @property
    def ok(self) -> bool:
        return self.total == 0


class DiagnosticSink:
    """Collects diagnostics for one run and attaches suggestions on the way in."""

    def __init__(self, suggest: Optional[Callable[[str], str]] = None):
        self._suggest = suggest
        self._items: List[Diagnostic] = []

    def report(self, kind: DiagnosticKind, message: str, line: int, column: int) -> Diagnostic:
        suggestion = self._suggest(message) if self._suggest else ""
        diag = Diagnostic(
            message=message,
            suggestion=suggestion,
            line=line,
            column=column,
            kind=kind,
        )
        self._items.append(diag)
        logger.debug("%s diagnostic: %s", kind.value, diag.text)
        return diag

    def lexical(self, message: str, line: int, column: int) -> Diagnostic:
        return self.report(DiagnosticKind.LEXICAL, message, line, column)

    def syntax(self, message: str, line: int, column: int) -> Diagnostic:
        return self.report(DiagnosticKind.SYNTAX, message, line, column)

    def semantic(self, message: str, line: int, column: int) -> Diagnostic:
        return self.report(DiagnosticKind.SEMANTIC, message, line, column)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
