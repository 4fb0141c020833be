"""
C Syntax Guardian — MCP Server

Exposes the single-pass C checker to MCP clients:

  1. analyze_code       — check C source passed inline
  2. analyze_file       — check a C file on disk
  3. explain_diagnostic — remediation and example for a diagnostic message
  4. list_builtins      — standard-library names the checker recognises
  5. coverage_report    — every diagnostic family with a suggestion

The server keeps no state between calls; each analysis starts from scratch.
"""

from mcp.server.fastmcp import FastMCP
import os
import sys
import logging

# Ensure the cguardian package is importable when launched as a script
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from cguardian.c_analyzer import CAnalyzer
from cguardian.diagnostics import AnalysisResult
from cguardian.stdlib_registry import BuiltinKind, get_builtin_registry, get_builtins_by_header
from cguardian.suggestion_engine import format_suggestion_explanation, get_all_suggestions

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("C Syntax Guardian")

analyzer = CAnalyzer()


def _format_result(title: str, result: AnalysisResult) -> str:
    """Markdown rendering of one analysis result."""
    if result.ok:
        return f"**{title}**: no errors detected."

    report = f"**{title}**: {result.total} error(s) found.\n"
    if result.lexical:
        report += f"\n### Lexical ({len(result.lexical)})\n\n"
        for diag in result.lexical:
            report += f"- {diag.text}\n"
            if diag.suggestion:
                report += f"  *Fix*: {diag.suggestion}\n"
    if result.semantic:
        report += f"\n### Syntax / Semantic ({len(result.semantic)})\n\n"
        for i, diag in enumerate(result.semantic, 1):
            report += f"{i}. [{diag.kind.value}] {diag.text}\n"
            if diag.suggestion:
                report += f"   *Fix*: {diag.suggestion}\n"
    return report


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Analyze Code
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def analyze_code(source: str) -> str:
    """
    Checks a C source buffer for lexical, syntactic and semantic errors.

    Args:
        source: The complete C translation unit as text.
    """
    try:
        return _format_result("Analysis", analyzer.analyze(source))
    except Exception as e:
        logger.exception("analyze_code failed")
        return f"Error analyzing code: {e}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Analyze File
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def analyze_file(file_path: str) -> str:
    """
    Checks a C source file on disk.

    A missing, unreadable or binary file is reported as a single error
    rather than failing the call.

    Args:
        file_path: Path to the .c file.
    """
    try:
        return _format_result(file_path, analyzer.analyze_file(file_path))
    except Exception as e:
        logger.exception("analyze_file failed for %s", file_path)
        return f"Error analyzing {file_path}: {e}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — Explain Diagnostic
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def explain_diagnostic(message: str) -> str:
    """
    Returns the remediation and a corrected example for a diagnostic message.

    Args:
        message: A diagnostic message, e.g. "Undeclared variable 'y'".
    """
    return format_suggestion_explanation(message)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — List Builtins
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_builtins(header: str = "") -> str:
    """
    Lists the standard-library functions, types and constants the checker
    treats as always declared.

    Args:
        header: Optional header filter, e.g. "stdio.h".  Empty lists all.
    """
    header = header.strip().strip("<>\"")
    entries = get_builtins_by_header(header) if header else dict(get_builtin_registry())
    if not entries:
        return f"No builtins registered for {header}"

    title = f"Builtins from {header}" if header else "All builtins"
    report = f"# {title} ({len(entries)})\n\n"
    report += "| Name | Kind | Header | Signature |\n"
    report += "|------|------|--------|-----------|\n"
    order = {BuiltinKind.FUNCTION: 0, BuiltinKind.TYPE: 1, BuiltinKind.CONSTANT: 2}
    for b in sorted(entries.values(), key=lambda b: (order[b.kind], b.header, b.name)):
        report += f"| `{b.name}` | {b.kind.value} | {b.header} | `{b.signature}` |\n"
    return report


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5 — Coverage Report
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def coverage_report() -> str:
    """
    Returns a markdown table of every diagnostic trigger that carries a
    remediation suggestion.
    """
    suggestions = get_all_suggestions()
    report = "# C Syntax Guardian Coverage Report\n\n"
    report += f"**Diagnostic families with suggestions**: {len(suggestions)}\n"
    report += f"**Builtins recognised**: {len(get_builtin_registry())}\n\n"
    report += "| Trigger | Remediation |\n"
    report += "|---------|-------------|\n"
    for s in suggestions:
        report += f"| `{s.trigger}` | {s.remediation} |\n"
    return report


def main():
    # stdout carries the MCP transport; logs go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("C Syntax Guardian starting")
    mcp.run()


if __name__ == "__main__":
    main()
