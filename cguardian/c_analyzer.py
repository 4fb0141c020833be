"""
C Analyzer — the facade that runs one full check of a C translation unit.

  • analyze(source)     — tokenize, parse, collect diagnostics
  • analyze_file(path)  — same for a file; I/O problems become one diagnostic
  • format_report(...)  — plain-text console report of a result

Every call builds a fresh lexer, parser and symbol table, so results depend
only on the input.  Only the builtin registry and suggestion table are
shared, and both are read-only.
"""

import os
import logging
from typing import Mapping, Optional

from cguardian.c_lexer import tokenize
from cguardian.c_parser import MAX_ITERATIONS, MAX_NESTING, Parser
from cguardian.diagnostics import AnalysisResult, Diagnostic, DiagnosticKind
from cguardian.stdlib_registry import Builtin
from cguardian.suggestion_engine import suggestion_for

logger = logging.getLogger(__name__)

# Leading bytes inspected for NUL when deciding a file is binary
BINARY_SNIFF_BYTES = 8192

_RULE = "=" * 70
_THIN_RULE = "-" * 70


class CAnalyzer:
    """Holds analysis settings; carries no state between runs."""

    def __init__(self, max_iterations: int = MAX_ITERATIONS, max_nesting: int = MAX_NESTING,
                 builtins: Optional[Mapping[str, Builtin]] = None,
                 binary_sniff_bytes: int = BINARY_SNIFF_BYTES):
        self.max_iterations = max_iterations
        self.max_nesting = max_nesting
        self.builtins = builtins
        self.binary_sniff_bytes = binary_sniff_bytes

    def analyze(self, source: str) -> AnalysisResult:
        tokens, lexical = tokenize(source)
        parser = Parser(
            tokens,
            builtins=self.builtins,
            max_iterations=self.max_iterations,
            max_nesting=self.max_nesting,
        )
        semantic = parser.parse()
        result = AnalysisResult(
            lexical=lexical, semantic=semantic, total=len(lexical) + len(semantic)
        )
        logger.debug(
            "Analysis finished: %d lexical, %d syntax/semantic",
            len(result.lexical), len(result.semantic),
        )
        return result

    def analyze_file(self, path: str) -> AnalysisResult:
        source = self._read_source(path)
        if isinstance(source, Diagnostic):
            return AnalysisResult(lexical=[source], total=1)
        return self.analyze(source)

    def _read_source(self, path: str):
        """File text, or a lexical Diagnostic describing why it is unusable."""
        if not os.path.isfile(path):
            return self._file_error(path, "no such file")
        try:
            with open(path, "rb") as fb:
                head = fb.read(self.binary_sniff_bytes)
            if b"\x00" in head:
                return self._file_error(path, "binary file")
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError as e:
            return self._file_error(path, f"not valid UTF-8 ({e.reason})")
        except OSError as e:
            return self._file_error(path, e.strerror or str(e))

    @staticmethod
    def _file_error(path: str, reason: str) -> Diagnostic:
        logger.warning("Cannot analyze %s: %s", path, reason)
        message = f"Could not open file '{path}': {reason}"
        return Diagnostic(
            message=message,
            suggestion=suggestion_for(message),
            kind=DiagnosticKind.LEXICAL,
        )


# ═══════════════════════════════════════════════════════════════════════
#  Module-level convenience API
# ═══════════════════════════════════════════════════════════════════════

def analyze(source: str) -> AnalysisResult:
    return CAnalyzer().analyze(source)


def analyze_file(path: str) -> AnalysisResult:
    return CAnalyzer().analyze_file(path)


def format_report(result: AnalysisResult) -> str:
    """Render a result the way the console front end prints it."""
    out = []
    if result.lexical:
        out.append(f"\nLEXICAL ERRORS ({len(result.lexical)}):")
        out.append(_THIN_RULE)
        for diag in result.lexical:
            out.append(f"  {diag.text}")
            if diag.suggestion:
                out.append(f"    {diag.suggestion}")

    if result.semantic:
        out.append(f"\nSYNTAX/SEMANTIC ERRORS ({len(result.semantic)}):")
        out.append(_THIN_RULE)
        for i, diag in enumerate(result.semantic, 1):
            out.append(f"[{i}] {diag.text}")
            if diag.suggestion:
                out.append(f"    {diag.suggestion}")
            out.append("")

    out.append(_RULE)
    if result.total == 0:
        out.append("SUCCESS: No errors detected!")
    else:
        out.append(f"TOTAL ERRORS: {result.total}")
    out.append(_RULE)
    return "\n".join(out)
