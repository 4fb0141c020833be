"""
Standard Library Registry — builtin names every program may use.

Covers the functions of <stdio.h>, <stdlib.h>, <string.h> and <math.h>
that the checker recognises, with enough of each signature to check call
arity, plus the common library type names (size_t, FILE) and object-like
macros (NULL, EOF, ...).  The registry is built once, exposed read-only,
and injected into the symbol table and parser.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from cguardian.type_system import (
    CType, BaseKind, INT, DOUBLE, CHAR, VOID, pointer_to, struct_type, with_alias,
)

logger = logging.getLogger(__name__)


class BuiltinKind(Enum):
    FUNCTION = "function"
    TYPE = "type"
    CONSTANT = "constant"


@dataclass(frozen=True)
class Builtin:
    name: str
    kind: BuiltinKind
    header: str
    ctype: CType                 # return type for functions
    signature: str = ""
    min_args: int = 0
    variadic: bool = False

    def accepts(self, arg_count: int) -> bool:
        if self.variadic:
            return arg_count >= self.min_args
        return arg_count == self.min_args

    def arity_text(self) -> str:
        if self.variadic:
            return f"at least {self.min_args}"
        return str(self.min_args)


# ═══════════════════════════════════════════════════════════════════════
#  Registry contents
# ═══════════════════════════════════════════════════════════════════════

_SIZE_T = with_alias(INT, "size_t")
_FILE = with_alias(struct_type("FILE"), "FILE")
_FILE_PTR = pointer_to(_FILE)
_CHAR_PTR = pointer_to(CHAR)
_VOID_PTR = pointer_to(VOID)

# name -> (header, return type, parameter count, variadic, signature)
_FUNCTIONS: Dict[str, Tuple[str, CType, int, bool, str]] = {
    # stdio.h
    "printf":   ("stdio.h", INT, 1, True, "int printf(const char *format, ...)"),
    "scanf":    ("stdio.h", INT, 1, True, "int scanf(const char *format, ...)"),
    "fprintf":  ("stdio.h", INT, 2, True, "int fprintf(FILE *stream, const char *format, ...)"),
    "fscanf":   ("stdio.h", INT, 2, True, "int fscanf(FILE *stream, const char *format, ...)"),
    "sprintf":  ("stdio.h", INT, 2, True, "int sprintf(char *str, const char *format, ...)"),
    "sscanf":   ("stdio.h", INT, 2, True, "int sscanf(const char *str, const char *format, ...)"),
    "fopen":    ("stdio.h", _FILE_PTR, 2, False, "FILE *fopen(const char *path, const char *mode)"),
    "fclose":   ("stdio.h", INT, 1, False, "int fclose(FILE *stream)"),
    "fread":    ("stdio.h", _SIZE_T, 4, False, "size_t fread(void *ptr, size_t size, size_t n, FILE *stream)"),
    "fwrite":   ("stdio.h", _SIZE_T, 4, False, "size_t fwrite(const void *ptr, size_t size, size_t n, FILE *stream)"),
    "fgets":    ("stdio.h", _CHAR_PTR, 3, False, "char *fgets(char *s, int size, FILE *stream)"),
    "fputs":    ("stdio.h", INT, 2, False, "int fputs(const char *s, FILE *stream)"),
    "getchar":  ("stdio.h", INT, 0, False, "int getchar(void)"),
    "putchar":  ("stdio.h", INT, 1, False, "int putchar(int c)"),
    "gets":     ("stdio.h", _CHAR_PTR, 1, False, "char *gets(char *s)"),
    "puts":     ("stdio.h", INT, 1, False, "int puts(const char *s)"),
    "perror":   ("stdio.h", VOID, 1, False, "void perror(const char *s)"),
    # stdlib.h
    "malloc":   ("stdlib.h", _VOID_PTR, 1, False, "void *malloc(size_t size)"),
    "calloc":   ("stdlib.h", _VOID_PTR, 2, False, "void *calloc(size_t n, size_t size)"),
    "realloc":  ("stdlib.h", _VOID_PTR, 2, False, "void *realloc(void *ptr, size_t size)"),
    "free":     ("stdlib.h", VOID, 1, False, "void free(void *ptr)"),
    "exit":     ("stdlib.h", VOID, 1, False, "void exit(int status)"),
    "abort":    ("stdlib.h", VOID, 0, False, "void abort(void)"),
    "atoi":     ("stdlib.h", INT, 1, False, "int atoi(const char *s)"),
    "atof":     ("stdlib.h", DOUBLE, 1, False, "double atof(const char *s)"),
    "atol":     ("stdlib.h", INT, 1, False, "long atol(const char *s)"),
    "rand":     ("stdlib.h", INT, 0, False, "int rand(void)"),
    "srand":    ("stdlib.h", VOID, 1, False, "void srand(unsigned int seed)"),
    "qsort":    ("stdlib.h", VOID, 4, False,
                 "void qsort(void *base, size_t n, size_t size, int (*cmp)(const void *, const void *))"),
    # string.h
    "strcpy":   ("string.h", _CHAR_PTR, 2, False, "char *strcpy(char *dest, const char *src)"),
    "strncpy":  ("string.h", _CHAR_PTR, 3, False, "char *strncpy(char *dest, const char *src, size_t n)"),
    "strlen":   ("string.h", _SIZE_T, 1, False, "size_t strlen(const char *s)"),
    "strcmp":   ("string.h", INT, 2, False, "int strcmp(const char *a, const char *b)"),
    "strcat":   ("string.h", _CHAR_PTR, 2, False, "char *strcat(char *dest, const char *src)"),
    "strchr":   ("string.h", _CHAR_PTR, 2, False, "char *strchr(const char *s, int c)"),
    "strstr":   ("string.h", _CHAR_PTR, 2, False, "char *strstr(const char *haystack, const char *needle)"),
    "memset":   ("string.h", _VOID_PTR, 3, False, "void *memset(void *s, int c, size_t n)"),
    "memcpy":   ("string.h", _VOID_PTR, 3, False, "void *memcpy(void *dest, const void *src, size_t n)"),
    "memmove":  ("string.h", _VOID_PTR, 3, False, "void *memmove(void *dest, const void *src, size_t n)"),
    # math.h
    "sin":      ("math.h", DOUBLE, 1, False, "double sin(double x)"),
    "cos":      ("math.h", DOUBLE, 1, False, "double cos(double x)"),
    "tan":      ("math.h", DOUBLE, 1, False, "double tan(double x)"),
    "sqrt":     ("math.h", DOUBLE, 1, False, "double sqrt(double x)"),
    "pow":      ("math.h", DOUBLE, 2, False, "double pow(double x, double y)"),
    "abs":      ("stdlib.h", INT, 1, False, "int abs(int x)"),
    "floor":    ("math.h", DOUBLE, 1, False, "double floor(double x)"),
    "ceil":     ("math.h", DOUBLE, 1, False, "double ceil(double x)"),
}

_TYPES: Dict[str, Tuple[str, CType]] = {
    "size_t": ("stddef.h", _SIZE_T),
    "FILE":   ("stdio.h", _FILE),
}

_CONSTANTS: Dict[str, Tuple[str, CType]] = {
    "NULL":         ("stddef.h", with_alias(CType(BaseKind.VOID, pointer_depth=1, null_constant=True), "NULL")),
    "EOF":          ("stdio.h", INT),
    "stdin":        ("stdio.h", _FILE_PTR),
    "stdout":       ("stdio.h", _FILE_PTR),
    "stderr":       ("stdio.h", _FILE_PTR),
    "RAND_MAX":     ("stdlib.h", INT),
    "EXIT_SUCCESS": ("stdlib.h", INT),
    "EXIT_FAILURE": ("stdlib.h", INT),
    "M_PI":         ("math.h", DOUBLE),
}


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

@lru_cache(maxsize=None)
def get_builtin_registry() -> Mapping[str, Builtin]:
    """The shared, read-only registry (built on first use)."""
    entries: Dict[str, Builtin] = {}
    for name, (header, ret, count, variadic, sig) in _FUNCTIONS.items():
        entries[name] = Builtin(name, BuiltinKind.FUNCTION, header, ret, sig, count, variadic)
    for name, (header, ctype) in _TYPES.items():
        entries[name] = Builtin(name, BuiltinKind.TYPE, header, ctype, f"typedef {name}")
    for name, (header, ctype) in _CONSTANTS.items():
        entries[name] = Builtin(name, BuiltinKind.CONSTANT, header, ctype, f"#define {name}")
    logger.debug("Builtin registry built with %d entries", len(entries))
    return MappingProxyType(entries)


def get_builtin(name: str) -> Optional[Builtin]:
    return get_builtin_registry().get(name)


def get_builtins_by_header(header: str) -> Dict[str, Builtin]:
    """Return the builtins declared by one header, e.g. 'stdio.h'."""
    return {k: v for k, v in get_builtin_registry().items() if v.header == header}
