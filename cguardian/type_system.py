"""
Type Engine — type descriptors and the compatibility rules of the checker.

A ``CType`` describes a value's type as a base kind plus pointer depth,
array-ness, an optional struct tag and the typedef alias chain it was reached
through.  Two sentinels stand outside the lattice:

  • UNKNOWN: not (yet) inferable; never flagged and never propagated
  • INVALID: the result of an illegal operation that was already reported

``is_compatible`` and ``result_type`` are pure and total over descriptor pairs.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class BaseKind(Enum):
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"
    VOID = "void"
    STRUCT = "struct"
    STRING = "string"
    UNKNOWN = "UNKNOWN"
    INVALID = "INVALID"


# Numeric promotion rank: char < int < float < double
_RANK = {
    BaseKind.CHAR: 0,
    BaseKind.INT: 1,
    BaseKind.FLOAT: 2,
    BaseKind.DOUBLE: 3,
}

ARITHMETIC_OPS = {"+", "-", "*", "/", "%"}
COMPARISON_OPS = {"==", "!=", "<", ">", "<=", ">="}
LOGICAL_OPS = {"&&", "||"}
BITWISE_OPS = {"&", "|", "^", "<<", ">>"}


@dataclass(frozen=True)
class CType:
    base: BaseKind
    pointer_depth: int = 0
    is_array: bool = False
    struct_tag: Optional[str] = None
    # Not part of identity: 'const int' and a typedef of int are both int
    is_const: bool = field(default=False, compare=False)
    aliases: Tuple[str, ...] = field(default=(), compare=False)
    null_constant: bool = field(default=False, compare=False)

    def __str__(self):
        return describe(self)

    @property
    def is_sentinel(self) -> bool:
        return self.base in (BaseKind.UNKNOWN, BaseKind.INVALID)

    @property
    def indirection(self) -> int:
        """Pointer depth after array-to-pointer decay."""
        return self.pointer_depth + (1 if self.is_array else 0)


UNKNOWN = CType(BaseKind.UNKNOWN)
INVALID = CType(BaseKind.INVALID)

INT = CType(BaseKind.INT)
FLOAT = CType(BaseKind.FLOAT)
DOUBLE = CType(BaseKind.DOUBLE)
CHAR = CType(BaseKind.CHAR)
VOID = CType(BaseKind.VOID)
STRING = CType(BaseKind.STRING)
NULL_CONSTANT = CType(BaseKind.INT, null_constant=True)


# ═══════════════════════════════════════════════════════════════════════
#  Constructors & queries
# ═══════════════════════════════════════════════════════════════════════

def struct_type(tag: str) -> CType:
    return CType(BaseKind.STRUCT, struct_tag=tag)


def from_keywords(words: Iterable[str]) -> CType:
    """Build a descriptor from a run of type keywords.

    ``unsigned``, ``short`` and ``long`` fold into int; ``long double`` is
    double and ``unsigned char`` stays char.
    """
    words = list(words)
    is_const = "const" in words
    if "double" in words:
        base = BaseKind.DOUBLE
    elif "float" in words:
        base = BaseKind.FLOAT
    elif "char" in words:
        base = BaseKind.CHAR
    elif "void" in words:
        base = BaseKind.VOID
    else:
        base = BaseKind.INT
    return CType(base, is_const=is_const)


def pointer_to(ctype: CType, depth: int = 1) -> CType:
    if ctype.is_sentinel:
        return ctype
    return replace(ctype, pointer_depth=ctype.pointer_depth + depth, null_constant=False)


def as_array(ctype: CType) -> CType:
    if ctype.is_sentinel:
        return ctype
    return replace(ctype, is_array=True)


def with_alias(ctype: CType, alias: str) -> CType:
    return replace(ctype, aliases=ctype.aliases + (alias,))


def with_const(ctype: CType) -> CType:
    return replace(ctype, is_const=True)


def element_type(ctype: CType) -> Optional[CType]:
    """Type produced by ``x[i]`` or ``*x``; None if ``x`` is not indexable."""
    if ctype.is_sentinel:
        return UNKNOWN
    if ctype.is_array:
        return replace(ctype, is_array=False, aliases=())
    if ctype.pointer_depth > 0:
        return replace(ctype, pointer_depth=ctype.pointer_depth - 1, aliases=())
    if ctype.base == BaseKind.STRING:
        return CHAR
    return None


def dereference(ctype: CType) -> Optional[CType]:
    return element_type(ctype)


def decay(ctype: CType) -> CType:
    """Array-to-pointer decay; string literals decay to ``char*``."""
    if ctype.base == BaseKind.STRING:
        return CType(BaseKind.CHAR, pointer_depth=1)
    if ctype.is_array:
        return replace(ctype, is_array=False, pointer_depth=ctype.pointer_depth + 1)
    return ctype


def is_pointer(ctype: CType) -> bool:
    return ctype.indirection > 0 or ctype.base == BaseKind.STRING


def is_numeric(ctype: CType) -> bool:
    return ctype.indirection == 0 and ctype.base in _RANK


def is_integral(ctype: CType) -> bool:
    return ctype.indirection == 0 and ctype.base in (BaseKind.INT, BaseKind.CHAR)


def is_void(ctype: CType) -> bool:
    return ctype.base == BaseKind.VOID and ctype.indirection == 0


def is_struct(ctype: CType) -> bool:
    return ctype.base == BaseKind.STRUCT and ctype.indirection == 0


def describe(ctype: CType) -> str:
    """Human-readable spelling used in diagnostics, e.g. ``struct Point*``."""
    if ctype.base == BaseKind.STRUCT:
        text = f"struct {ctype.struct_tag}"
    else:
        text = ctype.base.value
    text += "*" * ctype.pointer_depth
    if ctype.is_array:
        text += "[]"
    return text


# ═══════════════════════════════════════════════════════════════════════
#  Compatibility
# ═══════════════════════════════════════════════════════════════════════

def _pointer_compatible(target: CType, source: CType) -> bool:
    t, s = decay(target), decay(source)
    if t.pointer_depth == 1 and t.base == BaseKind.VOID:
        return True
    if s.pointer_depth == 1 and s.base == BaseKind.VOID:
        return True
    return (
        t.pointer_depth == s.pointer_depth
        and t.base == s.base
        and t.struct_tag == s.struct_tag
    )


def is_compatible(target: CType, source: CType) -> bool:
    """Can a value of type ``source`` initialise or be assigned to ``target``?"""
    if target.is_sentinel or source.is_sentinel:
        return True
    if target == source:
        return True
    if is_void(target) or is_void(source):
        return False

    # Strings: exact only, except that a literal may fill a char* or char[]
    if target.base == BaseKind.STRING or source.base == BaseKind.STRING:
        if source.base == BaseKind.STRING and target.base == BaseKind.CHAR:
            return target.indirection == 1
        return False

    if is_pointer(target):
        if source.null_constant:
            return True
        if is_pointer(source):
            return _pointer_compatible(target, source)
        return False
    if is_pointer(source):
        return False

    if target.base == BaseKind.STRUCT or source.base == BaseKind.STRUCT:
        return (
            target.base == source.base == BaseKind.STRUCT
            and target.struct_tag == source.struct_tag
        )

    if not (is_numeric(target) and is_numeric(source)):
        return False
    if target.base == BaseKind.CHAR:
        return source.base == BaseKind.CHAR
    if target.base == BaseKind.INT:
        return source.base in (BaseKind.INT, BaseKind.CHAR)
    # Floating targets accept every numeric source
    return True


# ═══════════════════════════════════════════════════════════════════════
#  Binary operator result types
# ═══════════════════════════════════════════════════════════════════════

def _wider(lhs: CType, rhs: CType) -> CType:
    winner = lhs if _RANK[lhs.base] >= _RANK[rhs.base] else rhs
    if winner.base == BaseKind.CHAR:
        return INT
    return CType(winner.base)


def _arithmetic(lhs: CType, rhs: CType, op: str) -> CType:
    if op == "+" and (lhs.base == BaseKind.STRING or rhs.base == BaseKind.STRING):
        return STRING
    if is_numeric(lhs) and is_numeric(rhs):
        if op == "%" and not (is_integral(lhs) and is_integral(rhs)):
            return INVALID
        return _wider(lhs, rhs)
    # Pointer arithmetic
    if op in ("+", "-") and is_pointer(lhs) and is_integral(rhs):
        return decay(lhs)
    if op == "+" and is_integral(lhs) and is_pointer(rhs):
        return decay(rhs)
    if op == "-" and is_pointer(lhs) and is_pointer(rhs):
        return INT if _pointer_compatible(lhs, rhs) else INVALID
    return INVALID


def result_type(lhs: CType, rhs: CType, op: str) -> CType:
    """Type of ``lhs <op> rhs``; INVALID if the combination is illegal."""
    if op in LOGICAL_OPS:
        return INT
    if op not in ARITHMETIC_OPS | COMPARISON_OPS | BITWISE_OPS:
        return UNKNOWN
    if lhs.is_sentinel or rhs.is_sentinel:
        return UNKNOWN

    if op in ARITHMETIC_OPS:
        return _arithmetic(lhs, rhs, op)
    if op in COMPARISON_OPS:
        if is_compatible(lhs, rhs) or is_compatible(rhs, lhs):
            return INT
        return INVALID
    # Bitwise and shift
    if is_numeric(lhs) and is_numeric(rhs):
        return INT
    return INVALID
