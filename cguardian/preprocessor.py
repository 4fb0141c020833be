"""
Directive Checker — syntactic validation of preprocessor lines.

  • #include targets must be <...> or "..."; headers are recorded
  • #if / #ifdef / #ifndef must be balanced by #endif
  • unknown directive names are reported

No macro expansion is performed.
"""

import re
import logging
from typing import List, Set, Tuple

from cguardian.diagnostics import DiagnosticSink

logger = logging.getLogger(__name__)

KNOWN_DIRECTIVES = {
    "include", "define", "undef", "if", "ifdef", "ifndef", "elif", "else",
    "endif", "pragma", "error", "warning", "line",
}

_OPENERS = {"if", "ifdef", "ifndef"}

_DIRECTIVE_RE = re.compile(r"#\s*([A-Za-z_]\w*)?(.*)", re.DOTALL)
_COMMENT_RE = re.compile(r"/\*.*?\*/|//.*", re.DOTALL)
_INCLUDE_RE = re.compile(r'<([^<>\n]+)>|"([^"\n]+)"')


class DirectiveChecker:
    """
    Syntactic checks for preprocessor lines.

    Macro expansion is not performed.  The checker validates ``#include``
    targets (balanced ``<...>`` or ``"..."``, without verifying that the
    header exists), tracks ``#if``/``#endif`` nesting, and reports unknown
    directive names.  Diagnostics go to the lexical sink.
    """

    def __init__(self, sink: DiagnosticSink):
        self.sink = sink
        self.included_headers: Set[str] = set()
        # (directive, line, column) of every conditional still open
        self._open: List[Tuple[str, int, int]] = []

    def process(self, text: str, line: int, column: int):
        m = _DIRECTIVE_RE.match(text)
        if m is None:
            return
        name, rest = m.group(1), m.group(2)
        if name is None:
            # A lone '#' is the null directive
            if rest.strip():
                self.sink.lexical(f"Unknown preprocessor directive '{text.strip()}'", line, column)
            return

        if name not in KNOWN_DIRECTIVES:
            self.sink.lexical(f"Unknown preprocessor directive '#{name}'", line, column)
            return

        if name == "include":
            self._process_include(rest, line, column)
        elif name in _OPENERS:
            self._open.append((name, line, column))
        elif name in ("elif", "else"):
            if not self._open:
                self.sink.lexical(f"#{name} without #if", line, column)
        elif name == "endif":
            if self._open:
                self._open.pop()
            else:
                self.sink.lexical("#endif without #if", line, column)

    def _process_include(self, rest: str, line: int, column: int):
        target = _COMMENT_RE.sub("", rest).strip()
        m = _INCLUDE_RE.fullmatch(target)
        if m is None:
            self.sink.lexical("Invalid #include syntax", line, column)
            return
        header = (m.group(1) or m.group(2)).strip()
        self.included_headers.add(header)
        logger.debug("Include recorded: %s", header)

    def finish(self):
        """Report every conditional left open at end of input."""
        for name, line, column in self._open:
            self.sink.lexical(f"Missing #endif for #{name} opened on line {line}", line, column)
        self._open.clear()

    def is_header_included(self, header: str) -> bool:
        return header in self.included_headers

    @property
    def open_conditionals(self) -> int:
        return len(self._open)
