"""
Symbol Table — a LIFO stack of scopes for one analysis run.

  • Scope 0 is file scope; function bodies and compound statements push more
  • Lookup resolves innermost-first, so inner declarations shadow outer ones
  • Redeclaring a name in the *same* scope is refused (``declare`` → False)
  • Builtin names are consulted before any user scope and always resolve
  • Struct tags live in their own namespace alongside ordinary identifiers

The builtin registry is injected, never owned or mutated.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from cguardian.stdlib_registry import Builtin, BuiltinKind, get_builtin_registry
from cguardian.type_system import CType, UNKNOWN

logger = logging.getLogger(__name__)


class SymbolKind(Enum):
    VARIABLE = "variable"
    FUNCTION = "function"
    TYPEDEF = "typedef"
    STRUCT_TAG = "struct"
    BUILTIN_FUNCTION = "builtin function"
    BUILTIN_TYPE = "builtin type"
    BUILTIN_CONSTANT = "builtin constant"


_BUILTIN_KINDS = {
    BuiltinKind.FUNCTION: SymbolKind.BUILTIN_FUNCTION,
    BuiltinKind.TYPE: SymbolKind.BUILTIN_TYPE,
    BuiltinKind.CONSTANT: SymbolKind.BUILTIN_CONSTANT,
}


@dataclass
class Symbol:
    """A declared name and where it was declared (1-indexed)."""
    name: str
    ctype: CType
    line: int = 0
    column: int = 0
    kind: SymbolKind = SymbolKind.VARIABLE
    # Functions
    params: Optional[Tuple[CType, ...]] = None   # None = unknown / unchecked
    variadic: bool = False
    defined: bool = False
    # Struct tags
    members: Optional[Dict[str, CType]] = None   # None = forward declared only

    @property
    def is_function(self) -> bool:
        return self.kind in (SymbolKind.FUNCTION, SymbolKind.BUILTIN_FUNCTION)

    @property
    def is_type_name(self) -> bool:
        return self.kind in (SymbolKind.TYPEDEF, SymbolKind.BUILTIN_TYPE)

    @property
    def is_builtin(self) -> bool:
        return self.kind in _BUILTIN_KINDS.values()


def _tag_key(tag: str) -> str:
    # A space can never occur in an identifier, so tags cannot collide with names
    return f"struct {tag}"


def symbol_from_builtin(entry: Builtin) -> Symbol:
    return Symbol(
        name=entry.name,
        ctype=entry.ctype,
        kind=_BUILTIN_KINDS[entry.kind],
        variadic=entry.variadic,
        defined=True,
    )


class SymbolTable:
    """Scoped name → Symbol mapping with a read-only builtin fallback."""

    def __init__(self, builtins: Optional[Mapping[str, Builtin]] = None):
        self.builtins = builtins if builtins is not None else get_builtin_registry()
        self._builtin_symbols: Dict[str, Symbol] = {}
        self._scopes: List[Dict[str, Symbol]] = [{}]

    # ────────────────────────────────────────────────────────────────
    #  Scope management
    # ────────────────────────────────────────────────────────────────

    @property
    def depth(self) -> int:
        """0 at file scope, +1 per open function body or block."""
        return len(self._scopes) - 1

    def push_scope(self):
        self._scopes.append({})

    def pop_scope(self):
        if len(self._scopes) > 1:
            self._scopes.pop()
        else:
            logger.debug("pop_scope at file scope ignored")

    @contextmanager
    def scope(self) -> Iterator["SymbolTable"]:
        """Push a scope for the duration of a ``with`` block."""
        self.push_scope()
        try:
            yield self
        finally:
            self.pop_scope()

    # ────────────────────────────────────────────────────────────────
    #  Declarations
    # ────────────────────────────────────────────────────────────────

    def declare(self, name: str, ctype: CType, line: int = 0, column: int = 0,
                kind: SymbolKind = SymbolKind.VARIABLE, **extra) -> bool:
        """Add ``name`` to the current scope; False if it is already there."""
        current = self._scopes[-1]
        if name in current:
            return False
        current[name] = Symbol(name, ctype, line, column, kind, **extra)
        return True

    def declare_struct(self, tag: str, members: Optional[Dict[str, CType]],
                       line: int = 0, column: int = 0) -> bool:
        """Declare or complete a struct tag in the current scope.

        A forward declaration may be completed once; defining the same tag
        twice in one scope is refused.
        """
        key = _tag_key(tag)
        current = self._scopes[-1]
        existing = current.get(key)
        if existing is not None:
            if members is None:
                return True
            if existing.members is not None:
                return False
            existing.members = dict(members)
            return True
        current[key] = Symbol(
            tag, UNKNOWN, line, column, SymbolKind.STRUCT_TAG,
            members=dict(members) if members is not None else None,
        )
        return True

    # ────────────────────────────────────────────────────────────────
    #  Lookup
    # ────────────────────────────────────────────────────────────────

    def is_builtin(self, name: str) -> bool:
        return name in self.builtins

    def _builtin_symbol(self, name: str) -> Optional[Symbol]:
        entry = self.builtins.get(name)
        if entry is None:
            return None
        sym = self._builtin_symbols.get(name)
        if sym is None:
            sym = self._builtin_symbols[name] = symbol_from_builtin(entry)
        return sym

    def lookup(self, name: str) -> Optional[Symbol]:
        """Builtins first, then scopes innermost to outermost."""
        sym = self._builtin_symbol(name)
        if sym is not None:
            return sym
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def lookup_local(self, name: str) -> Optional[Symbol]:
        """Only the current (innermost) scope."""
        return self._scopes[-1].get(name)

    def lookup_struct(self, tag: str) -> Optional[Symbol]:
        key = _tag_key(tag)
        for scope in reversed(self._scopes):
            if key in scope:
                return scope[key]
        return None

    def exists(self, name: str) -> bool:
        return self.lookup(name) is not None

    def type_of(self, name: str) -> CType:
        sym = self.lookup(name)
        return sym.ctype if sym is not None else UNKNOWN

    def is_typedef(self, name: str) -> bool:
        sym = self.lookup(name)
        return sym is not None and sym.is_type_name
